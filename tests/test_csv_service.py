"""
Tests for CSV export/import.

Import reports bad rows and carries on; only whole-file problems and
commit failures raise.
"""

import csv
import io

import pytest

from passbook.associations import AssociationManager
from passbook.models.audit import AuditEventType
from passbook.ordering import OrderingManager
from passbook.services.storage import CommitError, EntityStore
from passbook.transfer import (
    EXPORT_HEADER,
    CSVService,
    CSVWriteError,
    FileAccessError,
    InvalidFormatError,
)

HEADER = ",".join(EXPORT_HEADER) + "\n"


def parse(text):
    return list(csv.reader(io.StringIO(text, newline="")))


class TestExport:
    """Tests for export_accounts_to_csv / export_accounts_to_file."""

    def test_header_only_for_empty_store(self, csv_service):
        assert csv_service.export_accounts_to_csv() == HEADER

    def test_export_row_layout(self, store, associations, csv_service):
        account = store.create_account("Example Bank", "Main", "001", "1234567")
        associations.add_tag(account, store.create_tag("Work", "#45B7D1"))
        associations.add_tag(account, store.create_tag("Savings", "#96CEB4"))

        rows = parse(csv_service.export_accounts_to_csv())

        assert rows[0] == EXPORT_HEADER
        assert rows[1][:5] == ["Example Bank", "Main", "001", "1234567", "Work;Savings"]
        assert rows[1][5] == account.created_at.strftime("%Y-%m-%d %H:%M:%S")
        assert rows[1][6] == account.updated_at.strftime("%Y-%m-%d %H:%M:%S")

    def test_export_quotes_special_characters(self, store, csv_service):
        store.create_account('Bank, "The" One', "Line\nTwo")

        text = csv_service.export_accounts_to_csv()

        assert '"Bank, ""The"" One"' in text
        assert parse(text)[1][:2] == ['Bank, "The" One', "Line\nTwo"]

    def test_export_uses_lf_and_natural_order(self, store, csv_service):
        store.create_account("Second", sort_index=1)
        store.create_account("First", sort_index=0)

        text = csv_service.export_accounts_to_csv()

        assert "\r\n" not in text
        assert [row[0] for row in parse(text)[1:]] == ["Second", "First"]

    @pytest.mark.asyncio
    async def test_export_to_file(self, store, csv_service, tmp_path, audit_storage):
        store.create_account("Example Bank")

        path = await csv_service.export_accounts_to_file()

        assert path == tmp_path / "accounts.csv"
        assert path.read_text(encoding="utf-8") == csv_service.export_accounts_to_csv()
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.EXPORT_COMPLETED

    @pytest.mark.asyncio
    async def test_export_replaces_previous_file(self, store, csv_service, tmp_path):
        await csv_service.export_accounts_to_file()
        store.create_account("Example Bank")

        path = await csv_service.export_accounts_to_file()

        assert "Example Bank" in path.read_text(encoding="utf-8")
        assert list(tmp_path.iterdir()) == [path]

    @pytest.mark.asyncio
    async def test_export_write_failure(self, csv_service, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        with pytest.raises(CSVWriteError):
            await csv_service.export_accounts_to_file(blocker)


class TestImport:
    """Tests for import_accounts_from_text / import_accounts_from_csv."""

    @pytest.mark.asyncio
    async def test_duplicate_row_reported_with_row_number(self, store, csv_service, backend):
        """Two good rows and a duplicate: 2 succeed, row 3 fails."""
        text = (
            HEADER
            + "BankA,Branch,001,1234567\n"
            + "BankA,Branch,001,1234567\n"
            + "BankB,,002,7654321\n"
        )

        result = await csv_service.import_accounts_from_text(text)

        assert result.success_count == 2
        assert result.error_count == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row 3:")
        assert result.summary == "2 succeeded, 1 failed"
        assert backend.save_count == 1

    @pytest.mark.asyncio
    async def test_validation_errors_do_not_abort(self, store, csv_service):
        text = (
            HEADER
            + ",Branch,001,1234567\n"
            + "BankA,Branch,000,1234567\n"
            + "BankB,Branch,12,1234567\n"
            + "BankC,Branch,001,123\n"
            + "BankD,Branch,001,1234567\n"
        )

        result = await csv_service.import_accounts_from_text(text)

        assert result.success_count == 1
        assert result.errors == [
            "Row 2: Bank name is required",
            "Row 3: Branch code must be between 001 and 999",
            "Row 4: Branch code must be 3 digits",
            "Row 5: Account number must be 7 digits",
        ]
        assert [a.bank_name for a in store.list_accounts()] == ["BankD"]

    @pytest.mark.asyncio
    async def test_short_row_is_invalid_format(self, csv_service):
        result = await csv_service.import_accounts_from_text(HEADER + "BankA,Branch,001\n")
        assert result.success_count == 0
        assert result.errors == ["Row 2: Invalid row format"]

    @pytest.mark.asyncio
    async def test_blank_lines_are_skipped_and_not_counted(self, csv_service):
        text = HEADER + "\n   \nBankA,,,\n\n,,,\n"

        result = await csv_service.import_accounts_from_text(text)

        assert result.success_count == 1
        assert result.errors == ["Row 3: Bank name is required"]

    @pytest.mark.asyncio
    async def test_fields_are_trimmed(self, store, csv_service):
        await csv_service.import_accounts_from_text(HEADER + "  BankA , Main ,  001 , 1234567 \n")
        account = store.list_accounts()[0]
        assert (account.bank_name, account.branch_name, account.branch_code, account.account_number) == (
            "BankA",
            "Main",
            "001",
            "1234567",
        )

    @pytest.mark.asyncio
    async def test_quoted_fields(self, store, csv_service):
        text = HEADER + '"Bank, ""Quoted""","Multi\nLine",001,1234567\r\n'

        result = await csv_service.import_accounts_from_text(text)

        assert result.success_count == 1
        account = store.list_accounts()[0]
        assert account.bank_name == 'Bank, "Quoted"'
        assert account.branch_name == "Multi\nLine"

    @pytest.mark.asyncio
    async def test_sort_index_continues_across_run(self, store, csv_service):
        store.create_account("Existing", sort_index=4)
        await store.commit()

        await csv_service.import_accounts_from_text(
            HEADER + "A,,,\n,,,\nB,,,\nC,,,\n"
        )

        indices = {a.bank_name: a.sort_index for a in store.list_accounts()}
        assert indices == {"Existing": 4, "A": 5, "B": 6, "C": 7}

    @pytest.mark.asyncio
    async def test_tags_resolved_by_exact_name(self, store, associations, csv_service):
        work = store.create_tag("Work", "#45B7D1")
        savings = store.create_tag("Savings", "#96CEB4")
        await store.commit()

        result = await csv_service.import_accounts_from_text(
            HEADER + "BankA,,,,Work; Savings ;work;Unknown;\n"
        )

        assert result.success_count == 1
        account = store.list_accounts()[0]
        assert associations.tags_for(account) == [work, savings]
        assert associations.verify_integrity() == []

    @pytest.mark.asyncio
    async def test_extra_columns_ignored(self, store, csv_service):
        result = await csv_service.import_accounts_from_text(
            HEADER + "BankA,,,,,2024-01-01 00:00:00,2024-01-01 00:00:00,extra\n"
        )
        assert result.success_count == 1

    @pytest.mark.asyncio
    async def test_nothing_committed_when_every_row_fails(self, csv_service, backend):
        result = await csv_service.import_accounts_from_text(HEADER + ",,,\n")
        assert result.success_count == 0
        assert backend.save_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "Bank Name,Branch Name"])
    async def test_text_without_line_break_is_invalid_format(self, csv_service, backend, text):
        with pytest.raises(InvalidFormatError):
            await csv_service.import_accounts_from_text(text)
        assert backend.save_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["Bank Name\n", "Bank Name\r\n", "Bank Name\r"])
    async def test_header_with_line_break_imports_nothing(self, csv_service, backend, text):
        result = await csv_service.import_accounts_from_text(text)

        assert (result.success_count, result.error_count, result.errors) == (0, 0, [])
        assert backend.save_count == 0

    @pytest.mark.asyncio
    async def test_empty_export_imports_back(self, store, csv_service, backend):
        """Exporting an empty store produces a file import accepts."""
        result = await csv_service.import_accounts_from_text(csv_service.export_accounts_to_csv())

        assert (result.success_count, result.error_count) == (0, 0)
        assert store.list_accounts() == []
        assert backend.save_count == 0

    @pytest.mark.asyncio
    async def test_broken_quoting_is_invalid_format(self, store, csv_service):
        with pytest.raises(InvalidFormatError):
            await csv_service.import_accounts_from_text(HEADER + 'BankA,"unterminated,001,1234567\n')
        assert store.list_accounts() == []

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back_import(self, store, csv_service, backend, audit_storage):
        """A failed final commit raises and leaves no imported row behind."""
        store.create_account("Existing")
        await store.commit()
        backend.fail_saves = True

        with pytest.raises(CommitError):
            await csv_service.import_accounts_from_text(HEADER + "BankA,,,\nBankB,,,\n")

        assert [a.bank_name for a in store.list_accounts()] == ["Existing"]
        events = await audit_storage.get_recent_events()
        assert AuditEventType.IMPORT_FAILED in [e.event_type for e in events]

    @pytest.mark.asyncio
    async def test_row_failures_are_audited(self, csv_service, audit_storage):
        result = await csv_service.import_accounts_from_text(HEADER + ",,,\nBankA,,,\n")

        events = await audit_storage.get_recent_events()
        row_events = [e for e in events if e.event_type == AuditEventType.IMPORT_ROW_FAILED]
        assert len(row_events) == 1
        assert row_events[0].details["row"] == 2
        assert result.success_count == 1

    @pytest.mark.asyncio
    async def test_import_from_file(self, store, csv_service, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text(HEADER + "BankA,Main,001,1234567\n", encoding="utf-8")

        result = await csv_service.import_accounts_from_csv(path)

        assert result.summary == "Imported 1 accounts"
        assert store.list_accounts()[0].bank_name == "BankA"

    @pytest.mark.asyncio
    async def test_import_missing_file(self, csv_service, tmp_path):
        with pytest.raises(FileAccessError):
            await csv_service.import_accounts_from_csv(tmp_path / "missing.csv")

    @pytest.mark.asyncio
    async def test_import_non_utf8_file(self, csv_service, tmp_path):
        path = tmp_path / "latin1.csv"
        path.write_bytes((HEADER + "Caf\xe9,,,\n").encode("latin-1"))
        with pytest.raises(InvalidFormatError):
            await csv_service.import_accounts_from_csv(path)


class TestRoundTrip:
    """Export then import into an empty store reproduces the records."""

    @pytest.mark.asyncio
    async def test_round_trip(self, store, associations, csv_service, tmp_path):
        work = store.create_tag("Work", "#45B7D1")
        home = store.create_tag("Home", "#FF6B6B")
        first = store.create_account('Bank, "One"', "Main", "001", "1234567")
        store.create_account("Bank Two", "", "", "")
        third = store.create_account("Bank Three", "Line\nBreak", "999", "0000001")
        associations.add_tag(first, work)
        associations.add_tag(first, home)
        associations.add_tag(third, home)
        path = await csv_service.export_accounts_to_file()

        target = EntityStore()
        target.create_tag("Work", "#45B7D1")
        target.create_tag("Home", "#FF6B6B")
        target_associations = AssociationManager(target)
        importer = CSVService(target, target_associations, OrderingManager(target))

        result = await importer.import_accounts_from_csv(path)

        assert result.success_count == 3
        assert result.error_count == 0

        def fingerprint(entity_store, manager):
            return sorted(
                (
                    a.bank_name,
                    a.branch_name,
                    a.branch_code,
                    a.account_number,
                    tuple(t.name for t in manager.tags_for(a)),
                )
                for a in entity_store.list_accounts()
            )

        assert fingerprint(target, target_associations) == fingerprint(store, associations)
