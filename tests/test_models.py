"""
Tests for Passbook models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for the store, import/export and the facade
3. No real files outside tmp_path, no network
"""

import pytest
from uuid import uuid4

from passbook.models.account import (
    DEFAULT_TAGS,
    Account,
    Association,
    StoreSnapshot,
    Tag,
)
from passbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from passbook.models.results import FilterState, ImportResult, TagChangeSet
from passbook.validation import validate_tag


class TestRecordModels:
    """Tests for the Account, Tag and Association models."""

    def test_account_defaults(self):
        """Optional fields default to empty strings, never None."""
        account = Account(bank_name="Example Bank")
        assert account.branch_name == ""
        assert account.branch_code == ""
        assert account.account_number == ""
        assert account.sort_index == 0
        assert account.association_ids == ()

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from string fields."""
        account = Account(bank_name="  Example Bank  ", branch_code=" 001 ")
        assert account.bank_name == "Example Bank"
        assert account.branch_code == "001"

    def test_account_display_name(self):
        account = Account(bank_name="Example Bank", branch_name="Main", branch_code="001")
        assert account.display_name == "Example Bank Main (001)"

    def test_association_ids_are_read_only(self):
        """The public view cannot be used to mutate links."""
        tag = Tag(name="Work", color="#45B7D1")
        with pytest.raises(AttributeError):
            tag.association_ids.append(uuid4())

    def test_back_references_are_not_serialized(self):
        """Links are rebuilt from associations, so they stay out of the JSON."""
        account = Account(bank_name="Bank")
        account._attach(uuid4())
        assert "association_ids" not in account.model_dump()
        assert "_association_ids" not in account.model_dump_json()

    def test_attach_is_idempotent(self):
        account = Account(bank_name="Bank")
        association_id = uuid4()
        account._attach(association_id)
        account._attach(association_id)
        assert account.association_ids == (association_id,)

        account._detach(association_id)
        assert account.association_ids == ()

    def test_default_tags_are_valid(self):
        """Every seeded tag passes tag validation."""
        assert len(DEFAULT_TAGS) == 6
        for name, color in DEFAULT_TAGS:
            assert validate_tag(name, color) is None

    def test_snapshot_json_round_trip(self):
        """A snapshot survives JSON serialization."""
        account = Account(bank_name="Bank", branch_code="001")
        tag = Tag(name="Work", color="#45B7D1")
        association = Association(account_id=account.id, tag_id=tag.id)
        snapshot = StoreSnapshot(accounts=[account], tags=[tag], associations=[association])

        restored = StoreSnapshot.model_validate_json(snapshot.model_dump_json())
        assert restored.accounts[0].id == account.id
        assert restored.accounts[0].created_at == account.created_at
        assert restored.associations[0].tag_id == tag.id


class TestResultModels:
    """Tests for FilterState, TagChangeSet and ImportResult."""

    def test_filter_state_inactive_by_default(self):
        assert FilterState().is_active is False

    def test_filter_state_whitespace_search_is_inactive(self):
        assert FilterState(search_text="   ").is_active is False

    def test_filter_state_active(self):
        assert FilterState(search_text="bank").is_active is True
        assert FilterState(tag_id=uuid4()).is_active is True

    def test_tag_change_set_changed(self):
        assert TagChangeSet().changed is False
        assert TagChangeSet(added=[uuid4()]).changed is True

    def test_import_result_summary_success(self):
        result = ImportResult(success_count=3)
        assert result.has_errors is False
        assert result.summary == "Imported 3 accounts"

    def test_import_result_summary_with_errors(self):
        result = ImportResult(success_count=2, error_count=1, errors=["Row 3: Duplicate"])
        assert result.has_errors is True
        assert result.summary == "2 succeeded, 1 failed"

    def test_import_result_rejects_negative_counts(self):
        with pytest.raises(ValueError):
            ImportResult(success_count=-1)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            description="Account created",
        )
        assert event.event_type == AuditEventType.ACCOUNT_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            description="Exported",
            details={"account_count": 2},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "export_completed"
        assert log_dict["details"]["account_count"] == 2

    def test_audit_event_builder_account_created(self):
        """Test AuditEventBuilder.account_created."""
        account_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.account_created(account_id, "Example Bank", correlation_id)

        assert event.event_type == AuditEventType.ACCOUNT_CREATED
        assert event.entity_id == account_id
        assert event.correlation_id == correlation_id
        assert event.details["bank_name"] == "Example Bank"

    def test_audit_event_builder_import_row_failed(self):
        """Row failures are warnings carrying the row number."""
        event = AuditEventBuilder.import_row_failed(3, "Duplicate account", uuid4())

        assert event.event_type == AuditEventType.IMPORT_ROW_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["row"] == 3
        assert event.error_message == "Duplicate account"

    def test_audit_event_builder_import_completed_severity(self):
        """A partial import is reported as a warning."""
        clean = AuditEventBuilder.import_completed(2, 0, uuid4())
        partial = AuditEventBuilder.import_completed(2, 1, uuid4())
        assert clean.severity == AuditSeverity.INFO
        assert partial.severity == AuditSeverity.WARNING

    def test_audit_event_builder_commit_failed(self):
        event = AuditEventBuilder.commit_failed("import", "disk full")
        assert event.severity == AuditSeverity.ERROR
        assert event.details["operation"] == "import"
