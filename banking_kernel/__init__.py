"""
Banking Kernel - shared foundation for statement ingestion and reconciliation.

Provides:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- SQLAlchemy declarative base and session management
- Injectable clock for deterministic timestamps
"""

__version__ = "0.1.0"
