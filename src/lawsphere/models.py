"""Shared domain models used across the LawSphere pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping, Sequence

Role = Literal["user", "model"]
FillResponses = Mapping[str, str]


@dataclass(frozen=True)
class Template:
    """Named legal-document template held in the catalog."""

    template_id: str
    title: str
    normalized_title: str
    body: str = ""
    position: int = 0
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QuestionSpec:
    """One fill-in question of a template's question schema."""

    id: str
    question: str
    field_name: str
    required: bool


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    text: str


@dataclass(frozen=True)
class CachedQuery:
    """Persisted chat query/response pair keyed by the normalized query."""

    record_id: str
    query: str
    response: str
    timestamp: datetime | None = None


@dataclass(frozen=True)
class FilledDocument:
    """Document text synthesized from a template title and fill responses."""

    title: str
    content: str
    review_notes: Sequence[str] = ()


@dataclass(frozen=True)
class RenderedDocument:
    """Completed, paginated rendering of a filled document."""

    data: bytes
    page_count: int
    media_type: str = "application/pdf"


@dataclass(frozen=True)
class GeneratedArtifact:
    """Result of a fill request as handed to (and returned by) the artifact store."""

    title: str
    content: str
    rendered: RenderedDocument
    responses: Mapping[str, str]
    created_at: datetime | None = None
    artifact_id: str | None = None


@dataclass(frozen=True)
class ChatReply:
    reply: str
    create_doc: bool
    cached: bool
    cache_write_failed: bool = False


@dataclass(frozen=True)
class DocumentResult:
    """Outcome of a fill request; ``artifact_id`` is ``None`` when storage failed."""

    title: str
    content: str
    rendered: RenderedDocument
    review_notes: Sequence[str]
    artifact_id: str | None = None

    @property
    def stored(self) -> bool:
        return self.artifact_id is not None
