from __future__ import annotations

import json
from uuid import uuid4

import chromadb
import pytest

from lawsphere.errors import PersistenceFailure, RenderError, SchemaParseError, TemplateNotFound
from lawsphere.models import RenderedDocument
from lawsphere.services import (
    DocumentFiller,
    DocumentService,
    PdfRenderer,
    QuestionSchemaGenerator,
    TemplateResolver,
)
from lawsphere.storage import ChromaArtifactStore, ChromaTemplateCatalog

QUESTIONS = json.dumps(
    [
        {"id": f"q{i}", "question": f"Question {i}?", "fieldName": f"field{i}", "required": True}
        for i in range(1, 6)
    ]
)
FILLED = "MUTUAL NON-DISCLOSURE AGREEMENT\n\nDisclosing party: Jane Doe [REQUIRES REVIEW: recipient missing]"


class TaskGenerator:
    """Answers question-schema prompts and fill prompts differently."""

    def __init__(self, schema_reply: str = QUESTIONS, fill_reply: str = FILLED) -> None:
        self.schema_reply = schema_reply
        self.fill_reply = fill_reply
        self.calls = 0

    def generate(self, history, trigger=None, *, system=None) -> str:
        self.calls += 1
        if "JSON array" in history[0].text:
            return self.schema_reply
        return self.fill_reply


class BrokenRenderer:
    def render(self, title: str, content: str) -> RenderedDocument:
        raise RenderError("font missing")


class RecordingStore:
    def __init__(self) -> None:
        self.appended = []

    def append(self, artifact) -> str:
        self.appended.append(artifact)
        return f"doc-{len(self.appended)}"

    def get(self, artifact_id):
        return None


class FailingStore(RecordingStore):
    def append(self, artifact) -> str:
        raise PersistenceFailure("disk full")


def _service(generator=None, renderer=None, artifacts=None) -> DocumentService:
    catalog = ChromaTemplateCatalog(f"templates-{uuid4().hex}", client=chromadb.EphemeralClient())
    catalog.add("NDA Agreement.pdf")
    generator = generator or TaskGenerator()
    return DocumentService(
        resolver=TemplateResolver(catalog),
        questions=QuestionSchemaGenerator(generator),
        filler=DocumentFiller(generator),
        renderer=renderer or PdfRenderer(),
        artifacts=artifacts if artifacts is not None else RecordingStore(),
    )


def test_questions_for_resolved_template():
    title, questions = _service().questions_for("NDA Agreement.docx")
    assert title == "nda agreement"
    assert [q.id for q in questions] == ["q1", "q2", "q3", "q4", "q5"]


def test_questions_for_unknown_title_skips_text_service():
    generator = TaskGenerator()
    with pytest.raises(TemplateNotFound) as excinfo:
        _service(generator).questions_for("Lease Agreement")
    assert excinfo.value.available_titles == ["nda agreement"]
    assert generator.calls == 0


def test_unparseable_schema_propagates():
    with pytest.raises(SchemaParseError):
        _service(TaskGenerator(schema_reply="no questions today")).questions_for("nda agreement")


def test_generate_filled_document_renders_and_stores():
    store = RecordingStore()
    result = _service(artifacts=store).generate_filled_document("nda agreement", {"field1": "Jane Doe"})
    assert result.title == "nda agreement"
    assert result.content == FILLED
    assert result.rendered.data.startswith(b"%PDF")
    assert result.review_notes == ("recipient missing",)
    assert result.artifact_id == "doc-1"
    assert result.stored
    stored = store.appended[0]
    assert stored.responses == {"field1": "Jane Doe"}
    assert stored.rendered is result.rendered


def test_store_failure_still_returns_document():
    result = _service(artifacts=FailingStore()).generate_filled_document("nda agreement", {"field1": "Jane"})
    assert result.content == FILLED
    assert result.rendered.page_count == 1
    assert result.artifact_id is None
    assert not result.stored


def test_render_failure_is_fatal_and_nothing_is_stored():
    store = RecordingStore()
    with pytest.raises(RenderError):
        _service(renderer=BrokenRenderer(), artifacts=store).generate_filled_document("nda agreement", {})
    assert store.appended == []


def test_unknown_title_fails_before_filling():
    generator = TaskGenerator()
    store = RecordingStore()
    with pytest.raises(TemplateNotFound):
        _service(generator, artifacts=store).generate_filled_document("will", {"name": "x"})
    assert generator.calls == 0
    assert store.appended == []


def test_stored_artifact_can_be_fetched():
    store = ChromaArtifactStore(f"artifacts-{uuid4().hex}", client=chromadb.EphemeralClient())
    service = _service(artifacts=store)
    result = service.generate_filled_document("nda agreement", {"field1": "Jane"})
    artifact = service.get_artifact(result.artifact_id)
    assert artifact is not None
    assert artifact.rendered.data == result.rendered.data
    assert artifact.content == FILLED
