"""
banking_ingestion -- Bank statement ingestion.

Reads statement exports (CSV or pre-parsed rows), normalizes locale-formatted
amounts and dates, drops duplicates of already recorded transactions and
persists the rest as UNMATCHED bank transactions with an import summary.

Architecture:
    banking_ingestion/ is a top-level package. It writes through
    banking_modules.banking.repository; nothing in kernel/, engines/ or
    modules/ imports from ingestion.
"""
