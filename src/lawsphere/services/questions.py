"""Derive fill-in question schemas for templates via the text service."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from lawsphere.errors import SchemaParseError
from lawsphere.metrics.observability import get_logger
from lawsphere.models import ConversationTurn, QuestionSpec
from lawsphere.services.generation import TextGenerator, run_generation

_PAYLOAD = re.compile(r"\[.*\]", re.DOTALL)

SCHEMA_PROMPT = """\
You are a legal document assistant. I need to create questions to help a user fill out the following legal document: "{title}".

Create a JSON array of questions that would be needed to fill out this document. For each question:
1. Include a 'id' field with a unique identifier
2. Include a 'question' field with the actual question text
3. Include a 'fieldName' field representing what field this would fill
4. Include a 'required' boolean field

Format the response as a valid JSON array of objects. Only return the JSON array, nothing else.

Example format:
[
  {{
    "id": "q1",
    "question": "What is your full legal name?",
    "fieldName": "fullName",
    "required": true
  }},
  {{
    "id": "q2",
    "question": "What is your current address?",
    "fieldName": "address",
    "required": true
  }}
]

Generate between {minimum}-{maximum} questions depending on the complexity of the document. \
Make the questions specific to the document type.
"""


class _QuestionPayload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True, str_strip_whitespace=True)

    id: str = Field(min_length=1)
    question: str = Field(min_length=1)
    field_name: str = Field(alias="fieldName", min_length=1)
    required: bool


_SCHEMA_ADAPTER = TypeAdapter(List[_QuestionPayload])


@dataclass(frozen=True)
class ParsedSchema:
    questions: tuple[QuestionSpec, ...]


@dataclass(frozen=True)
class UnparseableSchema:
    raw_text: str
    reason: str


SchemaParse = Union[ParsedSchema, UnparseableSchema]


def parse_question_schema(raw_text: str, *, minimum: int = 5, maximum: int = 10) -> SchemaParse:
    """Parse generator output into a validated schema.

    The payload is everything from the first ``[`` to the last ``]``; prose
    around it is discarded. Anything short of a complete, valid schema is
    reported as ``UnparseableSchema`` without attempting a repair.
    """

    match = _PAYLOAD.search(raw_text or "")
    if match is None:
        return UnparseableSchema(raw_text, "no JSON array found in response")
    try:
        decoded = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return UnparseableSchema(raw_text, f"invalid JSON: {exc.msg} at position {exc.pos}")
    try:
        payloads = _SCHEMA_ADAPTER.validate_python(decoded)
    except ValidationError as exc:
        return UnparseableSchema(raw_text, f"unexpected question shape: {exc.error_count()} validation error(s)")
    if not minimum <= len(payloads) <= maximum:
        return UnparseableSchema(raw_text, f"expected {minimum}-{maximum} questions, got {len(payloads)}")
    for attribute, label in (("id", "id"), ("field_name", "fieldName")):
        values = [getattr(payload, attribute) for payload in payloads]
        duplicates = sorted({value for value in values if values.count(value) > 1})
        if duplicates:
            return UnparseableSchema(raw_text, f"duplicate {label} values: {', '.join(duplicates)}")
    questions = tuple(
        QuestionSpec(
            id=payload.id,
            question=payload.question,
            field_name=payload.field_name,
            required=payload.required,
        )
        for payload in payloads
    )
    return ParsedSchema(questions)


class QuestionSchemaGenerator:
    """Asks the text service for a template's fill-in questions.

    Results are not cached; every call invokes the text service once.
    """

    def __init__(self, generator: TextGenerator, *, minimum: int = 5, maximum: int = 10) -> None:
        if minimum < 1 or maximum < minimum:
            raise ValueError(f"Invalid question count range {minimum}-{maximum}")
        self._generator = generator
        self._minimum = minimum
        self._maximum = maximum
        self._logger = get_logger("questions")

    def build_prompt(self, normalized_title: str) -> str:
        return SCHEMA_PROMPT.format(title=normalized_title, minimum=self._minimum, maximum=self._maximum)

    def generate(self, normalized_title: str) -> tuple[QuestionSpec, ...]:
        history = [ConversationTurn(role="user", text=self.build_prompt(normalized_title))]
        raw = run_generation(self._generator, "question_schema", history, normalized_title)
        result = parse_question_schema(raw, minimum=self._minimum, maximum=self._maximum)
        if isinstance(result, UnparseableSchema):
            self._logger.error(
                "questions.unparseable",
                normalized_title=normalized_title,
                reason=result.reason,
                raw_text=result.raw_text,
            )
            raise SchemaParseError(result.raw_text, result.reason)
        self._logger.info("questions.generated", normalized_title=normalized_title, count=len(result.questions))
        return result.questions
