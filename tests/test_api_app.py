"""Tests for the FastAPI application with scripted text generation."""

from __future__ import annotations

import base64
import json
from uuid import uuid4

import chromadb
import pytest
from fastapi.testclient import TestClient

from lawsphere.api.app import AppDependencies, create_app
from lawsphere.config import Settings
from lawsphere.errors import PersistenceFailure
from lawsphere.services import (
    ConversationCache,
    DocumentFiller,
    DocumentService,
    PdfRenderer,
    QuestionSchemaGenerator,
    ResolverConfig,
    TemplateResolver,
)
from lawsphere.storage import ChromaArtifactStore, ChromaQueryCache, ChromaTemplateCatalog

QUESTIONS = [
    {"id": "q1", "question": "What is the disclosing party's name?", "fieldName": "disclosingParty", "required": True},
    {"id": "q2", "question": "What is the receiving party's name?", "fieldName": "receivingParty", "required": True},
    {"id": "q3", "question": "What is the effective date?", "fieldName": "effectiveDate", "required": True},
    {"id": "q4", "question": "How long does the agreement last?", "fieldName": "term", "required": False},
    {"id": "q5", "question": "Which state's law governs?", "fieldName": "governingLaw", "required": False},
]
CHAT_REPLY = "An NDA protects confidential information you share with a potential partner or employee."


class ScriptedGenerator:
    def __init__(self) -> None:
        self.schema_reply = "Here are the questions:\n" + json.dumps(QUESTIONS)
        self.chat_calls = 0

    def generate(self, history, trigger=None, *, system=None) -> str:
        prompt = history[0].text
        if "JSON array" in prompt:
            return self.schema_reply
        if trigger == "Fill the document using the above info.":
            return "MUTUAL NON-DISCLOSURE AGREEMENT\n\nBetween Acme Corp and Jane Doe. [REQUIRES REVIEW: governing law]"
        self.chat_calls += 1
        return CHAT_REPLY


class UnwritableArtifacts:
    def append(self, artifact) -> str:
        raise PersistenceFailure("artifact store offline")

    def get(self, artifact_id):
        return None


def _deps(generator: ScriptedGenerator, *, artifacts=None, policy: str = "first") -> AppDependencies:
    client = chromadb.EphemeralClient()
    suffix = uuid4().hex
    catalog = ChromaTemplateCatalog(f"templates-{suffix}", client=client)
    catalog.add("NDA Agreement.pdf", "NDA template")
    catalog.add("Lease Agreement.docx", "Lease template")
    documents = DocumentService(
        resolver=TemplateResolver(catalog, ResolverConfig(ambiguous_policy=policy)),
        questions=QuestionSchemaGenerator(generator),
        filler=DocumentFiller(generator),
        renderer=PdfRenderer(),
        artifacts=artifacts or ChromaArtifactStore(f"artifacts-{suffix}", client=client),
    )
    conversation = ConversationCache(generator, ChromaQueryCache(f"queries-{suffix}", client=client))
    return AppDependencies(catalog=catalog, conversation=conversation, documents=documents)


@pytest.fixture()
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture()
def client(generator: ScriptedGenerator) -> TestClient:
    app = create_app(settings=Settings(environment="test"), dependencies=_deps(generator))
    return TestClient(app)


def test_root_reports_liveness(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Legal Chatbot is live"


def test_chat_serves_repeat_questions_from_cache(client: TestClient, generator: ScriptedGenerator) -> None:
    first = client.post("/chat", json={"message": "What is an NDA?"})
    assert first.status_code == 200, first.text
    assert first.json() == {"reply": CHAT_REPLY, "createDoc": True, "cached": False}

    second = client.post("/chat", json={"message": "what is an nda?", "sessionId": "other"})
    assert second.json()["cached"] is True
    assert generator.chat_calls == 1


def test_chat_rejects_blank_message(client: TestClient) -> None:
    assert client.post("/chat", json={"message": "   "}).status_code == 400
    assert client.post("/chat", json={}).status_code == 422


def test_chat_session_can_be_reset(client: TestClient) -> None:
    client.post("/chat", json={"message": "hello", "sessionId": "s1"})
    assert client.delete("/chat/sessions/s1").status_code == 204


def test_document_questions_use_normalized_title(client: TestClient) -> None:
    response = client.post("/get-document-questions", json={"documentTitle": "NDA Agreement.docx"})
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["documentTitle"] == "nda agreement"
    assert [q["fieldName"] for q in payload["questions"]] == [q["fieldName"] for q in QUESTIONS]


def test_unknown_title_lists_available_titles(client: TestClient) -> None:
    response = client.post("/get-document-questions", json={"documentTitle": "Employment Contract"})
    assert response.status_code == 404
    payload = response.json()
    assert payload["error"] == "TemplateNotFound"
    assert payload["normalizedTitle"] == "employment contract"
    assert payload["availableTitles"] == ["lease agreement", "nda agreement"]
    assert 'No document found with title "employment contract"' in payload["details"]


def test_unparseable_schema_returns_raw_response(generator: ScriptedGenerator) -> None:
    generator.schema_reply = "I'd rather not."
    client = TestClient(create_app(settings=Settings(environment="test"), dependencies=_deps(generator)))
    response = client.post("/get-document-questions", json={"documentTitle": "nda agreement"})
    assert response.status_code == 500
    assert response.json()["error"] == "SchemaParseError"
    assert response.json()["rawResponse"] == "I'd rather not."


def test_ambiguous_title_is_conflict_when_rejected(generator: ScriptedGenerator) -> None:
    deps = _deps(generator, policy="reject")
    deps.catalog.add("nda agreement")
    client = TestClient(create_app(settings=Settings(environment="test"), dependencies=deps))
    response = client.post("/get-document-questions", json={"documentTitle": "nda agreement"})
    assert response.status_code == 409
    assert response.json()["candidates"] == ["NDA Agreement.pdf", "nda agreement"]


def test_fill_document_returns_pdf_and_stores_it(client: TestClient) -> None:
    response = client.post(
        "/generate-filled-document",
        json={"documentTitle": "nda agreement", "responses": {"disclosingParty": "Acme Corp", "term": 2}},
    )
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["message"] == "Document generated successfully"
    assert payload["documentTitle"] == "nda agreement"
    assert payload["reviewNotes"] == ["governing law"]
    assert base64.b64decode(payload["pdfBase64"]).startswith(b"%PDF")

    stored = client.get(f"/documents/{payload['documentId']}")
    assert stored.status_code == 200
    assert stored.json()["responses"] == {"disclosingParty": "Acme Corp", "term": "2"}

    pdf = client.get(f"/documents/{payload['documentId']}/pdf")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content == base64.b64decode(payload["pdfBase64"])


def test_fill_document_survives_store_failure(generator: ScriptedGenerator) -> None:
    deps = _deps(generator, artifacts=UnwritableArtifacts())
    client = TestClient(create_app(settings=Settings(environment="test"), dependencies=deps))
    response = client.post("/generate-filled-document", json={"documentTitle": "nda agreement", "responses": {}})
    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["message"] == "Document generated but not stored"
    assert payload["documentId"] is None
    assert payload["pdfBase64"]


def test_unknown_document_is_404(client: TestClient) -> None:
    assert client.get("/documents/missing").status_code == 404
    assert client.get("/documents/missing/pdf").status_code == 404


def test_templates_can_be_added_and_listed(client: TestClient) -> None:
    created = client.post("/templates", json={"title": "Last Will.docx", "body": "Will template"})
    assert created.status_code == 201, created.text
    assert created.json()["normalizedTitle"] == "last will"
    assert created.json()["position"] == 2

    listed = client.get("/templates").json()
    assert listed["total"] == 3
    assert [t["title"] for t in listed["templates"]] == ["NDA Agreement.pdf", "Lease Agreement.docx", "Last Will.docx"]

    assert client.post("/templates", json={"title": "  "}).status_code == 400


def test_correlation_id_is_echoed(client: TestClient) -> None:
    response = client.post(
        "/get-document-questions",
        json={"documentTitle": "missing"},
        headers={"X-Request-ID": "req-123"},
    )
    assert response.headers["X-Correlation-ID"] == "req-123"
    assert response.json()["correlation_id"] == "req-123"
