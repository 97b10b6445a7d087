"""
Module ORM Registry (``banking_modules._orm_registry``).

Ensures every module-level ORM model is imported so that ``Base.metadata``
contains all table definitions before ``create_tables()`` runs.
"""


def import_all_orm_models() -> None:
    """Import every ``banking_modules.*.orm`` module.  Idempotent."""
    # fmt: off
    import banking_modules.payments.orm  # noqa: F401
    import banking_modules.banking.orm  # noqa: F401
    # fmt: on
