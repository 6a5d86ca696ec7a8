"""
CSV Bulk Reconciliation

Exports every account (with its tags) to a CSV document and imports
accounts back from one.

DESIGN DECISION: Import is row-tolerant. A bad row is recorded as
"Row N: <message>" and skipped; it never aborts the run. Only problems
with the file as a whole (unreadable, not UTF-8, no line break, broken
quoting) are fatal.

Row numbers are 1-based counting the header as row 1, over non-blank
records only: the first data record is always "Row 2".

CRITICAL: Rows are staged in the store's working set and the whole run
is committed once, at the end, and only if at least one row succeeded.
A commit failure rolls back every staged row.
"""

import csv
import io
import re
import tempfile
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog

from passbook.associations import AssociationManager
from passbook.audit import AuditLogger, create_correlation_id
from passbook.config import TransferSettings, get_settings
from passbook.models.account import Account, Tag
from passbook.models.results import ImportResult
from passbook.ordering import OrderingManager
from passbook.services.storage import CommitError, DuplicateAccountError, EntityStore
from passbook.utils import atomic_write_text
from passbook.validation import FieldValidationError


logger = structlog.get_logger(__name__)


EXPORT_HEADER = [
    "Bank Name",
    "Branch Name",
    "Branch Code",
    "Account Number",
    "Tags",
    "Created At",
    "Updated At",
]
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
TAG_SEPARATOR = ";"
MIN_ROW_FIELDS = 4
LINE_BREAK = re.compile(r"\r\n|\r|\n")


# =============================================================================
# ERRORS
# =============================================================================

class CSVError(Exception):
    """Base exception for CSV import/export."""

    default_message = "CSV operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class FileAccessError(CSVError):
    """The import file could not be opened or read."""
    default_message = "Cannot access the file"


class InvalidFormatError(CSVError):
    """The document as a whole is not usable CSV."""
    default_message = "The CSV file format is invalid"


class InvalidRowFormatError(CSVError):
    """A single row has too few fields."""
    default_message = "Invalid row format"


class CSVWriteError(CSVError):
    """The export file could not be written."""
    default_message = "Failed to write the file"


# =============================================================================
# SERVICE
# =============================================================================

class CSVService:
    """
    Bulk export/import of accounts.

    Usage:
        service = CSVService(store, associations, ordering)
        path = service.export_accounts_to_file()
        result = await service.import_accounts_from_csv(path)
    """

    def __init__(
        self,
        store: EntityStore,
        associations: AssociationManager,
        ordering: OrderingManager,
        settings: Optional[TransferSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._associations = associations
        self._ordering = ordering
        self._settings = settings or get_settings().transfer
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # EXPORT
    # =========================================================================

    def _export_row(self, account: Account) -> list[str]:
        tag_names = TAG_SEPARATOR.join(tag.name for tag in self._associations.tags_for(account))
        return [
            account.bank_name,
            account.branch_name,
            account.branch_code,
            account.account_number,
            tag_names,
            account.created_at.strftime(TIMESTAMP_FORMAT),
            account.updated_at.strftime(TIMESTAMP_FORMAT),
        ]

    def export_accounts_to_csv(self) -> str:
        """
        Render every account as CSV text.

        Accounts are written in the store's natural order, not display
        order. Fields containing a comma, quote or newline are quoted
        with inner quotes doubled.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_HEADER)
        for account in self._store.list_accounts():
            writer.writerow(self._export_row(account))
        return buffer.getvalue()

    async def export_accounts_to_file(
        self,
        directory: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Write the export to <directory>/<export_filename>.

        The directory defaults to the configured export directory, then
        the system temp directory. An existing export is replaced.

        Raises:
            CSVWriteError: the file could not be written
        """
        if directory is None:
            directory = self._settings.export_directory or tempfile.gettempdir()
        path = Path(directory) / self._settings.export_filename

        content = self.export_accounts_to_csv()
        try:
            atomic_write_text(path, content)
        except OSError as e:
            logger.error("csv_export_failed", path=str(path), error=str(e))
            raise CSVWriteError(f"Failed to write the file: {path}") from e

        account_count = len(self._store.list_accounts())
        await self._audit.log_export_completed(str(path), account_count)
        return path

    # =========================================================================
    # IMPORT
    # =========================================================================

    async def import_accounts_from_csv(
        self,
        path: Union[str, Path],
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Import accounts from a UTF-8 CSV file.

        Raises:
            FileAccessError: the file cannot be read
            InvalidFormatError: not UTF-8, or not usable CSV
            CommitError: staged rows could not be saved (all rolled back)
        """
        path = Path(path)
        correlation_id = correlation_id or create_correlation_id()

        try:
            with path.open("r", encoding="utf-8", newline="") as handle:
                text = handle.read()
        except UnicodeDecodeError as e:
            await self._audit.log_import_failed("invalid_format", str(e), correlation_id)
            raise InvalidFormatError("The CSV file is not valid UTF-8") from e
        except OSError as e:
            await self._audit.log_import_failed("file_access", str(e), correlation_id)
            raise FileAccessError(f"Cannot access the file: {path}") from e

        return await self.import_accounts_from_text(
            text,
            source=str(path),
            correlation_id=correlation_id,
        )

    async def import_accounts_from_text(
        self,
        text: str,
        source: str = "<text>",
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Import accounts from CSV text.

        The first record is the header and is ignored. Each data record
        needs at least 4 fields: bank name, branch name, branch code,
        account number. An optional 5th field lists tag names separated
        by ";"; names that match no existing tag exactly are skipped.
        Columns past the 5th are ignored.

        Raises:
            InvalidFormatError: no line break at all, or broken quoting
            CommitError: staged rows could not be saved (all rolled back)
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._audit.log_import_started(source, correlation_id)

        try:
            records = self._parse_records(text)
        except InvalidFormatError as e:
            await self._audit.log_import_failed("invalid_format", e.message, correlation_id)
            raise

        result = ImportResult()
        tags_by_name = {tag.name: tag for tag in self._store.list_tags()}
        next_sort_index = self._ordering.next_account_sort_index()

        row_number = 1
        for fields in records:
            if _is_blank(fields):
                continue
            row_number += 1

            try:
                self._import_row(fields, next_sort_index, tags_by_name)
            except (InvalidRowFormatError, FieldValidationError, DuplicateAccountError) as e:
                message = e.message if isinstance(e, CSVError) else str(e)
                result.errors.append(f"Row {row_number}: {message}")
                result.error_count += 1
                await self._audit.log_import_row_failed(row_number, message, correlation_id)
                continue

            next_sort_index += 1
            result.success_count += 1

        if result.success_count > 0:
            try:
                await self._store.commit()
            except CommitError as e:
                await self._audit.log_import_failed("commit_failed", str(e), correlation_id)
                raise

        logger.info(
            "csv_import_finished",
            source=source,
            success_count=result.success_count,
            error_count=result.error_count,
        )
        await self._audit.log_import_completed(
            result.success_count,
            result.error_count,
            correlation_id,
        )
        return result

    def _parse_records(self, text: str) -> list[list[str]]:
        """Split the document into data records (header removed)."""
        if len(LINE_BREAK.split(text)) < 2:
            raise InvalidFormatError()

        try:
            records = list(csv.reader(io.StringIO(text, newline=""), strict=True))
        except csv.Error as e:
            raise InvalidFormatError(f"The CSV file format is invalid: {e}") from e

        return records[1:]

    def _import_row(
        self,
        fields: list[str],
        sort_index: int,
        tags_by_name: dict[str, Tag],
    ) -> Account:
        if len(fields) < MIN_ROW_FIELDS:
            raise InvalidRowFormatError()

        bank_name, branch_name, branch_code, account_number = (
            field.strip() for field in fields[:MIN_ROW_FIELDS]
        )
        tag_field = fields[MIN_ROW_FIELDS].strip() if len(fields) > MIN_ROW_FIELDS else ""

        account = self._store.create_account(
            bank_name=bank_name,
            branch_name=branch_name,
            branch_code=branch_code,
            account_number=account_number,
            sort_index=sort_index,
        )

        for name in tag_field.split(TAG_SEPARATOR):
            tag = tags_by_name.get(name.strip())
            if tag is not None:
                self._associations.add_tag(account, tag)

        return account


def _is_blank(fields: list[str]) -> bool:
    # "" and whitespace-only lines; ",,," is a (bad) row, not a blank one
    return not fields or (len(fields) == 1 and not fields[0].strip())
