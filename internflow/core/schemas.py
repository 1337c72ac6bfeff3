"""Core data models: extracted postings, persisted job records, lifecycle states."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ProfileType(str, Enum):
    """Which school combination the application is sent under."""

    BASE = "Base"
    MASTER = "Master"


class LifecycleState(str, Enum):
    """Status of a job record.

    ``sent`` and ``interview`` only move forward; nothing automatic
    moves a record out of them.
    """

    PENDING = "pending"
    FILTERED = "filtered"
    SENDING = "sending"
    SENT = "sent"
    INTERVIEW = "interview"
    ERROR = "error"

    @property
    def is_terminal_forward(self) -> bool:
        return self in (LifecycleState.SENT, LifecycleState.INTERVIEW)


class ParsedPosting(BaseModel):
    """One posting as emitted by the language model.

    Wire keys are camelCase (``emailSubject``); snake_case is accepted too.
    Frozen: the extractor hands these out and never touches them again.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    company: str
    position: str
    email: str
    profile_selected: ProfileType
    email_subject: str
    needs_review: bool
    passes_filter: bool

    department: str = ""
    opening_line: str = ""
    job_source_line: str = ""
    praise_line: str = ""
    review_reason: str = ""
    filter_reason: str = ""

    @field_validator(
        "department",
        "opening_line",
        "job_source_line",
        "praise_line",
        "review_reason",
        "filter_reason",
        mode="before",
    )
    @classmethod
    def none_to_empty(cls, v: object) -> object:
        return "" if v is None else v


# Fields a user may edit and that are written back to the durable store.
EDITABLE_FIELDS = frozenset({
    "company",
    "department",
    "position",
    "email",
    "profile_selected",
    "email_subject",
    "opening_line",
    "job_source_line",
    "praise_line",
    "needs_review",
    "review_reason",
    "filter_reason",
    "source",
})

# Never persisted.
LOCAL_FIELDS = frozenset({"selected", "logs"})


class JobRecord(BaseModel):
    """A job posting tracked by the collection.

    Placeholders carry a ``tmp-`` id and no ordinal until the durable
    version replaces them on reload.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str
    owner_id: str
    ordinal: int | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    company: str
    department: str = ""
    position: str
    email: str
    profile_selected: ProfileType = ProfileType.BASE
    email_subject: str
    opening_line: str = ""
    job_source_line: str = ""
    praise_line: str = ""
    needs_review: bool = False
    review_reason: str = ""
    passes_filter: bool = True
    filter_reason: str = ""
    status: LifecycleState = LifecycleState.PENDING
    source: str = ""
    raw_requirement: str = ""

    selected: bool = False
    logs: list[str] = Field(default_factory=list)

    @property
    def filename(self) -> str:
        """Attachment name: the subject plus ``.pdf``."""
        return f"{self.email_subject}.pdf"

    @property
    def is_placeholder(self) -> bool:
        return self.id.startswith("tmp-")

    @classmethod
    def from_posting(
        cls,
        posting: ParsedPosting,
        *,
        record_id: str,
        owner_id: str,
        source: str = "",
        raw_requirement: str = "",
    ) -> "JobRecord":
        """Build a record from an extracted posting.

        Postings that fail the eligibility filter start out ``filtered``.
        """
        status = LifecycleState.PENDING if posting.passes_filter else LifecycleState.FILTERED
        return cls(
            id=record_id,
            owner_id=owner_id,
            company=posting.company,
            department=posting.department,
            position=posting.position,
            email=posting.email,
            profile_selected=posting.profile_selected,
            email_subject=posting.email_subject,
            opening_line=posting.opening_line,
            job_source_line=posting.job_source_line,
            praise_line=posting.praise_line,
            needs_review=posting.needs_review,
            review_reason=posting.review_reason,
            passes_filter=posting.passes_filter,
            filter_reason=posting.filter_reason,
            status=status,
            source=source,
            raw_requirement=raw_requirement,
            selected=posting.passes_filter,
        )

    def snapshot(self) -> "JobRecord":
        """Deep copy used to roll back an optimistic change."""
        return self.model_copy(deep=True)
