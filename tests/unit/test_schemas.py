"""Tests for posting and record models."""

import pytest
from conftest import posting_data
from pydantic import ValidationError

from internflow.core.schemas import JobRecord, LifecycleState, ParsedPosting, ProfileType


class TestParsedPosting:
    def test_camel_case_keys(self) -> None:
        p = ParsedPosting.model_validate(posting_data(emailSubject="Hello"))
        assert p.email_subject == "Hello"

    def test_snake_case_keys_accepted(self) -> None:
        p = ParsedPosting(
            company="A",
            position="B",
            email="c@d.com",
            profile_selected="Master",
            email_subject="x",
            needs_review=True,
            passes_filter=False,
        )
        assert p.profile_selected is ProfileType.MASTER
        assert p.needs_review is True

    def test_null_optional_becomes_empty(self) -> None:
        p = ParsedPosting.model_validate(posting_data(department=None, praiseLine=None))
        assert p.department == ""
        assert p.praise_line == ""

    def test_frozen(self) -> None:
        p = ParsedPosting.model_validate(posting_data())
        with pytest.raises(ValidationError):
            p.company = "other"  # type: ignore[misc]

    @pytest.mark.parametrize(
        "missing",
        ["company", "position", "email", "profileSelected", "emailSubject", "needsReview", "passesFilter"],
    )
    def test_required_fields(self, missing: str) -> None:
        data = posting_data()
        del data[missing]
        with pytest.raises(ValidationError):
            ParsedPosting.model_validate(data)


class TestLifecycleState:
    def test_terminal_forward(self) -> None:
        assert LifecycleState.SENT.is_terminal_forward
        assert LifecycleState.INTERVIEW.is_terminal_forward
        assert not LifecycleState.PENDING.is_terminal_forward
        assert not LifecycleState.ERROR.is_terminal_forward


class TestJobRecord:
    def test_from_passing_posting(self) -> None:
        posting = ParsedPosting.model_validate(posting_data())
        record = JobRecord.from_posting(posting, record_id="tmp-1", owner_id="o", source="wechat")
        assert record.status is LifecycleState.PENDING
        assert record.selected is True
        assert record.source == "wechat"
        assert record.ordinal is None
        assert record.is_placeholder

    def test_from_failing_posting_is_filtered(self) -> None:
        posting = ParsedPosting.model_validate(
            posting_data(passesFilter=False, filterReason="HR role"),
        )
        record = JobRecord.from_posting(posting, record_id="r1", owner_id="o")
        assert record.status is LifecycleState.FILTERED
        assert record.selected is False
        assert record.filter_reason == "HR role"
        assert not record.is_placeholder

    def test_filename(self) -> None:
        record = JobRecord(id="r", owner_id="o", company="A", position="B", email="e", email_subject="Alex-NUS")
        assert record.filename == "Alex-NUS.pdf"

    def test_assignment_validated(self) -> None:
        record = JobRecord(id="r", owner_id="o", company="A", position="B", email="e", email_subject="s")
        with pytest.raises(ValidationError):
            record.status = "archived"  # type: ignore[assignment]

    def test_snapshot_is_independent(self) -> None:
        record = JobRecord(id="r", owner_id="o", company="A", position="B", email="e", email_subject="s")
        record.logs.append("one")
        copy = record.snapshot()
        record.logs.append("two")
        assert copy.logs == ["one"]
