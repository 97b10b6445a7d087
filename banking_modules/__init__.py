"""
banking_modules -- Business modules built on the banking kernel.

Sub-packages:
    banking   Bank accounts, statement transactions, matching and reconciliation
    payments  Minimal payments collaborator (contacts, payments, allocations)
"""
