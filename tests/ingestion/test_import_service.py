"""
Tests for ImportService and DuplicateDetector.

Runs the full parse -> deduplicate -> persist -> summarize pipeline against
a real database session.
"""

import io
from datetime import date
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from banking_ingestion.domain import ColumnMapping, StatementRow
from banking_ingestion.services import DuplicateDetector, ImportService
from banking_kernel.exceptions import (
    AccountNotFoundError,
    ImportFailedError,
    OperationCancelledError,
)
from banking_modules.banking.models import TransactionFilter, TransactionStatus
from banking_modules.banking.repository import SqlAlchemyBankingRepository

OTHER_TENANT_ID = "tenant-other"

THREE_ROW_CSV = (
    "Date,Amount,Description\n"
    "2024-03-15,250.50,Invoice INV-001\n"
    "2024-03-16,-45.20,Office supplies\n"
    "bad-date,10.00,x\n"
)

SWEDBANK_CSV = (
    "Kuupäev;Väärtuspäev;Tüüp;Summa;Valuuta;Viitenumber;Selgitus;Saaja/Maksja nimi;Konto\n"
    "15.03.2024;15.03.2024;MK;1 250,00;EUR;RF18539007547034;Arve 1001;Acme OÜ;EE382200221020145685\n"
    "16.03.2024;16.03.2024;MK;-99,90;EUR;;Kontoritarbed;Office Depot AS;EE471000001020145685\n"
)


@pytest.fixture
def import_service(session, tenant_id, deterministic_clock):
    return ImportService(session, tenant_id=tenant_id, clock=deterministic_clock)


@pytest.fixture
def repository(session, tenant_id):
    return SqlAlchemyBankingRepository(session, tenant_id)


def _transactions(repository, account_id):
    return repository.list_transactions(TransactionFilter(bank_account_id=account_id))


class TestCsvImport:
    """import_csv end to end."""

    def test_three_row_example(self, import_service, repository, bank_account):
        result = import_service.import_csv(
            bank_account.id, io.StringIO(THREE_ROW_CSV), "march.csv",
        )

        assert result.transactions_imported == 2
        assert result.duplicates_skipped == 0
        assert result.transactions_matched == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row 4: invalid date 'bad-date'")

        stored = _transactions(repository, bank_account.id)
        assert {t.amount for t in stored} == {Decimal("250.50"), Decimal("-45.20")}
        assert all(t.status == TransactionStatus.UNMATCHED for t in stored)
        assert all(t.matched_payment_id is None for t in stored)
        assert all(t.currency == "EUR" for t in stored)

    def test_summary_persisted(self, import_service, repository, bank_account):
        result = import_service.import_csv(
            bank_account.id, io.StringIO(THREE_ROW_CSV), "march.csv",
        )
        history = repository.list_imports(bank_account.id)
        assert len(history) == 1
        assert history[0].id == result.import_id
        assert history[0].file_name == "march.csv"
        assert history[0].transactions_imported == 2
        assert history[0].duplicates_skipped == 0

    def test_swedbank_format_auto_detected(self, import_service, repository, bank_account):
        result = import_service.import_csv(
            bank_account.id, io.StringIO(SWEDBANK_CSV), "swedbank.csv",
        )
        assert result.transactions_imported == 2
        assert result.errors == ()

        stored = {t.amount: t for t in _transactions(repository, bank_account.id)}
        income = stored[Decimal("1250.00")]
        assert income.reference == "RF18539007547034"
        assert income.counterparty_name == "Acme OÜ"
        assert income.value_date == date(2024, 3, 15)
        assert Decimal("-99.90") in stored

    def test_explicit_mapping(self, import_service, repository, bank_account):
        mapping = ColumnMapping(
            date_column=1, amount_column=0, description_column=2,
            date_format="%d/%m/%Y", has_header=False,
        )
        csv_text = "12.00,01/02/2024,coffee\n"
        result = import_service.import_csv(
            bank_account.id, io.StringIO(csv_text), "custom.csv", mapping=mapping,
        )
        assert result.transactions_imported == 1
        (txn,) = _transactions(repository, bank_account.id)
        assert txn.transaction_date == date(2024, 2, 1)
        assert txn.description == "coffee"

    def test_imported_at_comes_from_clock(self, import_service, repository, bank_account, deterministic_clock):
        import_service.import_csv(bank_account.id, io.StringIO(THREE_ROW_CSV), "march.csv")
        expected = deterministic_clock.now().replace(tzinfo=None)
        for txn in _transactions(repository, bank_account.id):
            assert txn.imported_at.replace(tzinfo=None) == expected

    def test_empty_file(self, import_service, bank_account):
        result = import_service.import_csv(bank_account.id, io.StringIO(""), "empty.csv")
        assert result.transactions_imported == 0
        assert result.errors == ()

    def test_unknown_account_rejected(self, import_service):
        with pytest.raises(AccountNotFoundError):
            import_service.import_csv(uuid4(), io.StringIO(THREE_ROW_CSV), "x.csv")

    def test_other_tenants_account_rejected(self, session, deterministic_clock, bank_account):
        service = ImportService(session, tenant_id=OTHER_TENANT_ID, clock=deterministic_clock)
        with pytest.raises(AccountNotFoundError):
            service.import_csv(bank_account.id, io.StringIO(THREE_ROW_CSV), "x.csv")


class TestRowResilience:
    """N rows with k bad ones import N - k."""

    def test_bad_rows_do_not_abort(self, import_service, bank_account):
        rows = [
            StatementRow(date=f"2024-03-{day:02d}", amount=f"{day}.00")
            for day in range(1, 11)
        ]
        rows[2] = StatementRow(date="2024-13-40", amount="1.00")
        rows[6] = StatementRow(date="2024-03-07", amount="seven")

        result = import_service.import_rows(bank_account.id, rows, "rows.json")

        assert result.transactions_imported == 8
        assert result.errors == (
            "Row 3: invalid date '2024-13-40'",
            "Row 7: invalid amount 'seven'",
        )

    def test_unreadable_csv_record_does_not_abort(self, import_service, repository, bank_account):
        text = (
            "Date,Amount,Description\n"
            "2024-03-15,250.50,Invoice INV-001\n"
            "2024-03-16,1.00," + "x" * 200_000 + "\n"
            "2024-03-17,-45.20,Office supplies\n"
        )
        result = import_service.import_csv(
            bank_account.id, io.StringIO(text), "huge.csv", skip_duplicates=False,
        )

        assert result.transactions_imported == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row 3: field larger than field limit")
        amounts = sorted(t.amount for t in _transactions(repository, bank_account.id))
        assert amounts == [Decimal("-45.20"), Decimal("250.50")]


class TestDeduplication:

    def test_reimport_skips_everything(self, import_service, bank_account):
        import_service.import_csv(bank_account.id, io.StringIO(THREE_ROW_CSV), "march.csv")
        second = import_service.import_csv(bank_account.id, io.StringIO(THREE_ROW_CSV), "march.csv")

        assert second.transactions_imported == 0
        assert second.duplicates_skipped == 2
        assert len(second.errors) == 1

    def test_duplicate_within_one_file(self, import_service, repository, bank_account):
        rows = [
            StatementRow(date="2024-03-15", amount="100.00", description="first"),
            StatementRow(date="2024-03-15", amount="100.00", description="second"),
        ]
        result = import_service.import_rows(bank_account.id, rows, "rows")
        assert result.transactions_imported == 1
        assert result.duplicates_skipped == 1
        (txn,) = _transactions(repository, bank_account.id)
        assert txn.description == "first"

    def test_external_id_match_is_duplicate(self, import_service, bank_account):
        import_service.import_rows(
            bank_account.id,
            [StatementRow(date="2024-03-15", amount="100.00", external_id="BANK-77")],
            "a",
        )
        result = import_service.import_rows(
            bank_account.id,
            [StatementRow(date="2024-03-20", amount="5.00", external_id="BANK-77")],
            "b",
        )
        assert result.duplicates_skipped == 1
        assert result.transactions_imported == 0

    def test_same_day_same_amount_collapses_regardless_of_reference(self, import_service, bank_account):
        rows = [
            StatementRow(date="2024-03-15", amount="50.00", reference="A"),
            StatementRow(date="2024-03-15", amount="50.00", reference="B"),
        ]
        result = import_service.import_rows(bank_account.id, rows, "rows")
        assert result.transactions_imported == 1
        assert result.duplicates_skipped == 1

    def test_skip_duplicates_disabled(self, import_service, bank_account):
        rows = [StatementRow(date="2024-03-15", amount="50.00")] * 2
        result = import_service.import_rows(bank_account.id, rows, "rows", skip_duplicates=False)
        assert result.transactions_imported == 2
        assert result.duplicates_skipped == 0

    def test_dedup_is_per_account(self, import_service, banking_service, bank_account):
        other = banking_service.create_bank_account("Savings", "EE00")
        row = [StatementRow(date="2024-03-15", amount="50.00")]
        import_service.import_rows(bank_account.id, row, "a")
        result = import_service.import_rows(other.id, row, "b")
        assert result.transactions_imported == 1

    def test_failed_duplicate_check_becomes_row_error(self, import_service, repository,
                                                      bank_account):
        real_check = SqlAlchemyBankingRepository.exists_date_amount

        def fail_on_first_date(self, account_id, transaction_date, amount):
            if transaction_date == date(2024, 3, 15):
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return real_check(self, account_id, transaction_date, amount)

        with patch.object(SqlAlchemyBankingRepository, "exists_date_amount", fail_on_first_date):
            result = import_service.import_rows(
                bank_account.id,
                [
                    StatementRow(date="2024-03-15", amount="1.00"),
                    StatementRow(date="2024-03-16", amount="2.00"),
                ],
                "rows",
            )
        assert result.transactions_imported == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row 1: duplicate check failed:")
        (stored,) = _transactions(repository, bank_account.id)
        assert stored.transaction_date == date(2024, 3, 16)
        assert len(repository.list_imports(bank_account.id)) == 1

    def test_duplicate_check_runs_in_savepoint(self, session, import_service, bank_account):
        with patch.object(session, "begin_nested", wraps=session.begin_nested) as begin_nested:
            import_service.import_rows(
                bank_account.id,
                [
                    StatementRow(date="2024-03-15", amount="1.00"),
                    StatementRow(date="2024-03-16", amount="2.00"),
                ],
                "rows",
            )
        assert begin_nested.call_count == 2


class TestDuplicateDetector:

    def test_external_id_checked_first(self, repository, import_service, bank_account):
        import_service.import_rows(
            bank_account.id,
            [StatementRow(date="2024-03-15", amount="100.00", external_id="X1")],
            "a",
        )
        detector = DuplicateDetector(repository)
        assert detector.is_duplicate(
            bank_account.id, date(2030, 1, 1), Decimal("1"), external_id="X1",
        )

    def test_date_amount_fallback(self, repository, import_service, bank_account):
        import_service.import_rows(
            bank_account.id, [StatementRow(date="2024-03-15", amount="100.00")], "a",
        )
        detector = DuplicateDetector(repository)
        assert detector.is_duplicate(bank_account.id, date(2024, 3, 15), Decimal("100.00"))
        assert not detector.is_duplicate(bank_account.id, date(2024, 3, 15), Decimal("100.01"))
        assert not detector.is_duplicate(bank_account.id, date(2024, 3, 16), Decimal("100.00"))


class TestFailureAndCancellation:

    def test_cancel_rolls_back_everything(self, import_service, repository, bank_account):
        calls = {"n": 0}

        def cancel_after_two():
            calls["n"] += 1
            return calls["n"] > 2

        rows = [StatementRow(date=f"2024-03-{d:02d}", amount="1.00") for d in range(1, 6)]
        with pytest.raises(OperationCancelledError) as exc_info:
            import_service.import_rows(bank_account.id, rows, "rows", cancel=cancel_after_two)

        assert exc_info.value.processed == 2
        assert exc_info.value.code == "OPERATION_CANCELLED"
        assert _transactions(repository, bank_account.id) == []
        assert repository.list_imports(bank_account.id) == []

    def test_cancel_keeps_earlier_imports(self, import_service, repository, bank_account):
        import_service.import_rows(
            bank_account.id, [StatementRow(date="2024-03-01", amount="1.00")], "first",
        )
        with pytest.raises(OperationCancelledError):
            import_service.import_rows(
                bank_account.id,
                [StatementRow(date="2024-03-02", amount="2.00")],
                "second",
                cancel=lambda: True,
            )
        assert len(_transactions(repository, bank_account.id)) == 1
        assert len(repository.list_imports(bank_account.id)) == 1

    def test_summary_failure_is_fatal(self, import_service, repository, bank_account):
        with patch.object(
            SqlAlchemyBankingRepository,
            "insert_import_summary",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            with pytest.raises(ImportFailedError) as exc_info:
                import_service.import_csv(
                    bank_account.id, io.StringIO(THREE_ROW_CSV), "march.csv",
                )
        assert exc_info.value.stage == "summary"
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert _transactions(repository, bank_account.id) == []


class TestImportLogging:

    def test_import_events_carry_context(self, import_service, bank_account, captured_logs):
        result = import_service.import_csv(
            bank_account.id, io.StringIO(THREE_ROW_CSV), "march.csv",
        )
        logs = captured_logs()
        completed = [r for r in logs if r["message"] == "import_completed"]
        assert len(completed) == 1
        record = completed[0]
        assert record["transactions_imported"] == 2
        assert record["error_count"] == 1
        assert record["import_id"] == str(result.import_id)
        assert record["bank_account_id"] == str(bank_account.id)
