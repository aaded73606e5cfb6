"""Pydantic models for AskPage."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_HEADINGS = 10
MAX_ACTIONS = 20
MAX_FORMS = 5
MAX_FORM_INPUTS = 20
MAX_PARAGRAPHS = 5

MAX_TITLE_LEN = 300
MAX_META_LEN = 500
MAX_HEADING_LEN = 200
MAX_ACTION_LEN = 50
MAX_FIELD_LEN = 100
MAX_PARAGRAPH_LEN = 500
MAX_SELECTION_LEN = 2000
MAX_URL_LEN = 2000


def clip(text: str | None, limit: int) -> str:
    """Collapse whitespace, trim, and cut to at most `limit` characters."""
    if not text:
        return ""
    return " ".join(text.split())[:limit].strip()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Heading(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1, le=6)
    text: str = Field(min_length=1)


class Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    kind: Literal["button", "link"]
    href: Optional[str] = None


class FormInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    name: str = ""
    placeholder: str = ""
    required: bool = False


class Form(BaseModel):
    model_config = ConfigDict(frozen=True)

    action_url: str = ""
    method: str = "GET"
    inputs: tuple[FormInput, ...] = Field(default=(), max_length=MAX_FORM_INPUTS)


class Snapshot(BaseModel):
    """Bounded structural summary of a document at one point in time.

    Frozen. The only field that changes after extraction is `selected_text`,
    and that goes through `with_selection()`, which returns a copy.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    url: str = ""
    meta_description: str = ""
    headings: tuple[Heading, ...] = Field(default=(), max_length=MAX_HEADINGS)
    actions: tuple[Action, ...] = Field(default=(), max_length=MAX_ACTIONS)
    forms: tuple[Form, ...] = Field(default=(), max_length=MAX_FORMS)
    paragraphs: tuple[str, ...] = Field(default=(), max_length=MAX_PARAGRAPHS)
    selected_text: str = ""
    extracted_at: datetime = Field(default_factory=_utcnow)
    extraction_duration_ms: Optional[int] = None

    def with_selection(self, text: str) -> "Snapshot":
        return self.model_copy(update={"selected_text": clip(text, MAX_SELECTION_LEN)})


class ExtractionResult(BaseModel):
    success: bool
    snapshot: Optional[Snapshot] = None
    error: Optional[str] = None


# ── Service wire models ─────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContextUsed(_CamelModel):
    title: str = ""
    url: str = ""
    headings_count: int = 0
    actions_count: int = 0
    has_selected_text: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "ContextUsed":
        return cls(
            title=snapshot.title,
            url=snapshot.url,
            headings_count=len(snapshot.headings),
            actions_count=len(snapshot.actions),
            has_selected_text=bool(snapshot.selected_text),
        )


class AskRequest(BaseModel):
    question: str = ""
    context: Optional[Snapshot] = None


class AskResponse(_CamelModel):
    answer: str = Field(min_length=1)
    context_used: ContextUsed


class AnalyzeRequest(BaseModel):
    context: Optional[Snapshot] = None


class ContentStructure(_CamelModel):
    headings: int = 0
    actions: int = 0
    forms: int = 0


class Analysis(_CamelModel):
    page_type: str
    complexity: Literal["low", "medium", "high"]
    interactivity: Literal["low", "medium", "high"]
    has_selected_content: bool = False
    content_structure: ContentStructure = Field(default_factory=ContentStructure)


class AnalyzeResponse(_CamelModel):
    analysis: Analysis
    suggestions: list[str] = Field(max_length=5)


# ── Panel-side models ───────────────────────────────────────

class Query(BaseModel):
    """A question bound to the snapshot it is asked against. Never persisted."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    question: str = Field(min_length=1)
    snapshot: Snapshot


class Answer(BaseModel):
    text: str
    source: Literal["remote", "fallback"]
    context_used: Optional[ContextUsed] = None


class ConversationEntry(BaseModel):
    question: str
    answer: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
