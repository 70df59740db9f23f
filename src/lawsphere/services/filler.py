"""Synthesize filled document text from question answers."""

from __future__ import annotations

import re
from typing import Mapping

from lawsphere.errors import UpstreamUnavailable
from lawsphere.metrics.observability import get_logger
from lawsphere.models import ConversationTurn, FilledDocument
from lawsphere.services.generation import TextGenerator, run_generation

REVIEW_MARKER = re.compile(r"\[REQUIRES REVIEW:\s*([^\]]*)\]")
FILL_TRIGGER = "Fill the document using the above info."

FILL_PROMPT = """\
You are a legal document assistant. Fill out the following legal document titled "{title}" using the information provided.

Here are the user's responses:
{responses}

Create a complete, professional legal document that follows standard format for this document type.
The document should be properly formatted with sections, appropriate legal language, and all user information integrated naturally.

If any critical information appears to be missing, use reasonable placeholder text and note that with [REQUIRES REVIEW: reason].
"""


def format_responses(responses: Mapping[str, str]) -> str:
    return "\n".join(f"{field}: {value}" for field, value in responses.items())


def review_notes(content: str) -> tuple[str, ...]:
    """Reasons given in the content's ``[REQUIRES REVIEW: reason]`` markers."""

    return tuple(reason.strip() for reason in REVIEW_MARKER.findall(content))


class DocumentFiller:
    """Produces document text with a single text-service call.

    The reply is returned verbatim; legal correctness and completeness of
    the generated text are not checked.
    """

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator
        self._logger = get_logger("filler")

    def build_prompt(self, normalized_title: str, responses: Mapping[str, str]) -> str:
        return FILL_PROMPT.format(title=normalized_title, responses=format_responses(responses))

    def fill(self, normalized_title: str, responses: Mapping[str, str]) -> FilledDocument:
        history = [ConversationTurn(role="user", text=self.build_prompt(normalized_title, responses))]
        content = run_generation(self._generator, "fill_document", history, FILL_TRIGGER)
        if not content.strip():
            raise UpstreamUnavailable(f'Text service returned no content for "{normalized_title}"')
        notes = review_notes(content)
        self._logger.info(
            "filler.complete",
            normalized_title=normalized_title,
            field_count=len(responses),
            content_chars=len(content),
            review_notes=len(notes),
        )
        return FilledDocument(title=normalized_title, content=content, review_notes=notes)
