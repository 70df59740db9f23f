"""Error taxonomy for the LawSphere pipeline."""

from __future__ import annotations

from typing import Sequence


class LawSphereError(RuntimeError):
    """Base class for pipeline failures reported to callers."""


class TemplateNotFound(LawSphereError):
    """No catalog entry matches the requested title."""

    def __init__(self, normalized_title: str, available_titles: Sequence[str], *, truncated: bool = False) -> None:
        self.normalized_title = normalized_title
        self.available_titles = list(available_titles)
        self.truncated = truncated
        listing = ", ".join(self.available_titles) or "<none>"
        if truncated:
            listing += ", ..."
        super().__init__(f'No document found with title "{normalized_title}". Available titles: {listing}.')


class TemplateAmbiguous(LawSphereError):
    """Several catalog entries match and the resolver is configured to reject them."""

    def __init__(self, normalized_title: str, candidates: Sequence[str]) -> None:
        self.normalized_title = normalized_title
        self.candidates = list(candidates)
        super().__init__(
            f'Title "{normalized_title}" matches {len(self.candidates)} templates: {", ".join(self.candidates)}.'
        )


class SchemaParseError(LawSphereError):
    """Generator output could not be parsed as a question schema."""

    def __init__(self, raw_text: str, reason: str) -> None:
        self.raw_text = raw_text
        self.reason = reason
        super().__init__(f"Failed to parse question schema: {reason}")


class UpstreamUnavailable(LawSphereError):
    """The text service or the template catalog could not be reached."""


class RenderError(LawSphereError):
    """The document renderer failed to produce a complete artifact."""


class PersistenceFailure(LawSphereError):
    """A store write or read failed."""


__all__ = [
    "LawSphereError",
    "PersistenceFailure",
    "RenderError",
    "SchemaParseError",
    "TemplateAmbiguous",
    "TemplateNotFound",
    "UpstreamUnavailable",
]
