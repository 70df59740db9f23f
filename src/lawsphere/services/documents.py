"""Document generation orchestration: resolve, ask, fill, render, persist."""

from __future__ import annotations

from typing import Mapping

from lawsphere.errors import PersistenceFailure
from lawsphere.metrics.observability import PipelineMetrics, get_logger
from lawsphere.models import DocumentResult, GeneratedArtifact, QuestionSpec
from lawsphere.services.filler import DocumentFiller
from lawsphere.services.questions import QuestionSchemaGenerator
from lawsphere.services.rendering import PdfRenderer
from lawsphere.services.resolver import TemplateResolver
from lawsphere.storage.artifacts import ArtifactStore


class DocumentService:
    """Runs the document pipeline for the HTTP layer.

    Filling is two-phase. Resolving, filling and rendering must all succeed
    for the request to succeed; storing the artifact afterwards is
    best-effort and a failure there only shows up in logs and metrics.
    """

    def __init__(
        self,
        resolver: TemplateResolver,
        questions: QuestionSchemaGenerator,
        filler: DocumentFiller,
        renderer: PdfRenderer,
        artifacts: ArtifactStore,
    ) -> None:
        self._resolver = resolver
        self._questions = questions
        self._filler = filler
        self._renderer = renderer
        self._artifacts = artifacts
        self._logger = get_logger("documents")

    def questions_for(self, raw_title: str) -> tuple[str, tuple[QuestionSpec, ...]]:
        template = self._resolver.resolve(raw_title)
        return template.normalized_title, self._questions.generate(template.normalized_title)

    def generate_filled_document(self, raw_title: str, responses: Mapping[str, str]) -> DocumentResult:
        template = self._resolver.resolve(raw_title)
        filled = self._filler.fill(template.normalized_title, responses)
        rendered = self._renderer.render(template.normalized_title, filled.content)
        result = DocumentResult(
            title=template.normalized_title,
            content=filled.content,
            rendered=rendered,
            review_notes=filled.review_notes,
        )
        artifact_id = self._persist(
            GeneratedArtifact(
                title=template.normalized_title,
                content=filled.content,
                rendered=rendered,
                responses=dict(responses),
            )
        )
        if artifact_id is None:
            return result
        return DocumentResult(
            title=result.title,
            content=result.content,
            rendered=result.rendered,
            review_notes=result.review_notes,
            artifact_id=artifact_id,
        )

    def get_artifact(self, artifact_id: str) -> GeneratedArtifact | None:
        return self._artifacts.get(artifact_id)

    def _persist(self, artifact: GeneratedArtifact) -> str | None:
        try:
            artifact_id = self._artifacts.append(artifact)
        except PersistenceFailure as exc:
            PipelineMetrics.record_persistence_failure("artifacts")
            self._logger.warning("documents.store_failed", title=artifact.title, error=str(exc))
            return None
        self._logger.info("documents.stored", title=artifact.title, document_id=artifact_id)
        return artifact_id
