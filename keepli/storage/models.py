"""
Domain models for the save pipeline.

Wire payloads from the browser extension use camelCase keys (aiEnabled,
authorName, ...). Models accept both the alias and the field name; records are
stored and returned in snake_case.
"""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from keepli.config import DEFAULT_STATUS


class CaptureStatus(str, Enum):
    """Where the saved post sits in the user's workflow."""

    INBOX = "inbox"
    TO_USE = "to_use"
    ARCHIVED = "archived"


class CaptureSource(str, Enum):
    LINKEDIN = "linkedin"
    WEB = "web"


class Intent(str, Enum):
    """Why the user saved the post. LEARN is the fallback for unknown values."""

    LEARN = "learn"
    POST_IDEA = "post_idea"
    OUTREACH = "outreach"
    RESEARCH = "research"


class AiStatus(str, Enum):
    DISABLED = "disabled"
    SUCCESS = "success"
    TIMEOUT = "timeout"
    QUOTA = "quota"
    ERROR = "error"


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"


class QuotaSnapshot(BaseModel):
    limit: int
    remaining: int
    count: int | None = None


class AiResult(BaseModel):
    """Normalized enrichment result (see keepli.llm.enrichment.normalize_result)."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    summary: str = Field(default="", validation_alias=AliasChoices("summary", "summary_160", "summary160"))
    tags: list[str] = Field(default_factory=list)
    intent: Intent = Intent.LEARN
    next_action: str = Field(default="", validation_alias=AliasChoices("next_action", "nextAction"))
    tokens_in: int = 0
    tokens_out: int = 0

    @field_validator("intent", mode="before")
    @classmethod
    def _fallback_intent(cls, value: object) -> Intent:
        if isinstance(value, Intent):
            return value
        candidate = value.strip().lower() if isinstance(value, str) else None
        if candidate in {intent.value for intent in Intent}:
            return Intent(candidate)
        return Intent.LEARN


class AiOutcome(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    status: AiStatus
    result: AiResult | None = None
    quota: QuotaSnapshot | None = None
    error: str | None = None


class CaptureRequest(BaseModel):
    """
    One capture as sent by the extension.

    url and post_content default to empty so a missing field surfaces as the
    pipeline's missing_fields error rather than a schema rejection.
    """

    model_config = ConfigDict(
        populate_by_name=True, use_enum_values=True, validate_default=True, str_max_length=50_000
    )

    url: str = ""
    post_content: str = Field(default="", validation_alias=AliasChoices("post_content", "postContent"))
    highlight: str | None = None
    title: str | None = None
    source: CaptureSource | None = None
    status: CaptureStatus = CaptureStatus(DEFAULT_STATUS)
    notes: str | None = Field(default=None, max_length=10_000)
    ai_enabled: bool = Field(default=True, validation_alias=AliasChoices("ai_enabled", "aiEnabled"))
    ai_result: AiResult | None = Field(default=None, validation_alias=AliasChoices("ai_result", "aiResult"))
    force: bool = False
    author_name: str | None = Field(default=None, validation_alias=AliasChoices("author_name", "authorName"))
    author_headline: str | None = Field(
        default=None, validation_alias=AliasChoices("author_headline", "authorHeadline")
    )
    author_company: str | None = Field(
        default=None, validation_alias=AliasChoices("author_company", "authorCompany")
    )
    author_url: str | None = Field(default=None, validation_alias=AliasChoices("author_url", "authorUrl"))


class SavedRecord(BaseModel):
    """A saved post, keyed by url_hash. saved_at is epoch milliseconds."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    url: str
    url_hash: str
    title: str
    post_content: str
    highlight: str | None = None
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    intent: Intent | None = None
    next_action: str | None = None
    notes: str | None = None
    status: CaptureStatus = CaptureStatus(DEFAULT_STATUS)
    source: CaptureSource = CaptureSource.WEB
    embed_url: str | None = None
    author_name: str | None = None
    author_headline: str | None = None
    author_company: str | None = None
    author_url: str | None = None
    saved_at: int = 0


class SaveNotice(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    level: NoticeLevel
    message: str


class SaveResult(BaseModel):
    """Outcome of one save: ok with the record, or a failure code with its category/action."""

    ok: bool
    record: SavedRecord | None = None
    row: list[str] | None = None
    duplicate: SavedRecord | bool | None = None
    ai: AiOutcome | None = None
    notices: list[SaveNotice] = Field(default_factory=list)
    error: str | None = None
    category: str | None = None
    action: str | None = None
