"""FastAPI application exposing LawSphere services."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from lawsphere.api.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentQuestionsRequest,
    DocumentQuestionsResponse,
    FillDocumentRequest,
    FillDocumentResponse,
    QuestionModel,
    StoredDocumentResponse,
    TemplateCreateRequest,
    TemplateListResponse,
    TemplateSummary,
)
from lawsphere.config import Settings, get_settings
from lawsphere.errors import (
    LawSphereError,
    PersistenceFailure,
    RenderError,
    SchemaParseError,
    TemplateAmbiguous,
    TemplateNotFound,
    UpstreamUnavailable,
)
from lawsphere.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from lawsphere.models import Template
from lawsphere.services.conversation import ConversationCache, ConversationConfig
from lawsphere.services.documents import DocumentService
from lawsphere.services.filler import DocumentFiller
from lawsphere.services.generation import build_text_generator
from lawsphere.services.questions import QuestionSchemaGenerator
from lawsphere.services.rendering import PdfRenderer, RenderConfig
from lawsphere.services.resolver import ResolverConfig, TemplateResolver
from lawsphere.storage import ChromaArtifactStore, ChromaQueryCache, ChromaTemplateCatalog, build_client


@dataclass(frozen=True)
class AppDependencies:
    catalog: ChromaTemplateCatalog
    conversation: ConversationCache
    documents: DocumentService


def _build_dependencies(settings: Settings) -> AppDependencies:
    client = build_client(settings)
    catalog = ChromaTemplateCatalog(
        settings.templates_collection,
        client=client,
        extensions=settings.template_extensions_tuple,
        page_size=settings.store_page_size,
    )
    query_cache = ChromaQueryCache(settings.query_cache_collection, client=client, page_size=settings.store_page_size)
    artifacts = ChromaArtifactStore(settings.artifacts_collection, client=client)
    generator = build_text_generator(settings)

    resolver = TemplateResolver(
        catalog,
        ResolverConfig(
            extensions=settings.template_extensions_tuple,
            default_extension=settings.default_template_extension,
            ambiguous_policy=settings.ambiguous_template_policy,
            diagnostic_title_limit=settings.diagnostic_title_limit,
        ),
    )
    documents = DocumentService(
        resolver=resolver,
        questions=QuestionSchemaGenerator(
            generator,
            minimum=settings.schema_min_questions,
            maximum=settings.schema_max_questions,
        ),
        filler=DocumentFiller(generator),
        renderer=PdfRenderer(
            RenderConfig(
                title_font_size=settings.render_title_font_size,
                body_font_size=settings.render_body_font_size,
            )
        ),
        artifacts=artifacts,
    )
    conversation = ConversationCache(
        generator,
        query_cache,
        ConversationConfig(
            window_turns=settings.context_window_turns,
            create_doc_threshold=settings.create_doc_threshold,
            max_sessions=settings.max_sessions,
            persona=settings.assistant_persona,
        ),
    )
    return AppDependencies(catalog=catalog, conversation=conversation, documents=documents)


def _template_summary(template: Template) -> TemplateSummary:
    return TemplateSummary(
        id=template.template_id,
        title=template.title,
        normalized_title=template.normalized_title,
        position=template.position,
    )


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="LawSphere API", version="0.1.0")
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def _error(request: Request, status_code: int, kind: str, details: str, **extra: object) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        content: dict[str, object] = {"error": kind, "details": details, "correlation_id": correlation_id}
        content.update(extra)
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(TemplateNotFound)
    async def handle_template_not_found(request: Request, exc: TemplateNotFound) -> JSONResponse:
        logger.info("template.not_found", normalized_title=exc.normalized_title)
        return _error(
            request,
            status.HTTP_404_NOT_FOUND,
            "TemplateNotFound",
            str(exc),
            normalizedTitle=exc.normalized_title,
            availableTitles=exc.available_titles,
        )

    @app.exception_handler(TemplateAmbiguous)
    async def handle_template_ambiguous(request: Request, exc: TemplateAmbiguous) -> JSONResponse:
        return _error(
            request,
            status.HTTP_409_CONFLICT,
            "TemplateAmbiguous",
            str(exc),
            normalizedTitle=exc.normalized_title,
            candidates=exc.candidates,
        )

    @app.exception_handler(SchemaParseError)
    async def handle_schema_parse_error(request: Request, exc: SchemaParseError) -> JSONResponse:
        logger.error("schema.parse_error", reason=exc.reason)
        return _error(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "SchemaParseError",
            str(exc),
            rawResponse=exc.raw_text,
        )

    @app.exception_handler(UpstreamUnavailable)
    async def handle_upstream_unavailable(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
        logger.error("upstream.unavailable", detail=str(exc))
        return _error(request, status.HTTP_502_BAD_GATEWAY, "UpstreamUnavailable", str(exc))

    @app.exception_handler(RenderError)
    async def handle_render_error(request: Request, exc: RenderError) -> JSONResponse:
        logger.error("render.error", detail=str(exc))
        return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "RenderError", str(exc))

    @app.exception_handler(PersistenceFailure)
    async def handle_persistence_failure(request: Request, exc: PersistenceFailure) -> JSONResponse:
        logger.error("persistence.error", detail=str(exc))
        return _error(request, status.HTTP_503_SERVICE_UNAVAILABLE, "PersistenceFailure", str(exc))

    @app.exception_handler(LawSphereError)
    async def handle_pipeline_error(request: Request, exc: LawSphereError) -> JSONResponse:
        logger.error("pipeline.error", detail=str(exc))
        return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, type(exc).__name__, str(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "InternalServerError", "details": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_conversation(dep: AppDependencies = Depends(get_dependencies)) -> ConversationCache:
        return dep.conversation

    def get_documents(dep: AppDependencies = Depends(get_dependencies)) -> DocumentService:
        return dep.documents

    def get_catalog(dep: AppDependencies = Depends(get_dependencies)) -> ChromaTemplateCatalog:
        return dep.catalog

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "Legal Chatbot is live"

    @app.post("/chat", response_model=ChatResponse)
    def chat(payload: ChatRequest, conversation: ConversationCache = Depends(get_conversation)) -> ChatResponse:
        try:
            result = conversation.reply(payload.message, session_id=payload.session_id)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return ChatResponse(reply=result.reply, create_doc=result.create_doc, cached=result.cached)

    @app.delete("/chat/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def reset_chat_session(session_id: str, conversation: ConversationCache = Depends(get_conversation)) -> Response:
        conversation.reset_session(session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/get-document-questions", response_model=DocumentQuestionsResponse)
    def get_document_questions(
        payload: DocumentQuestionsRequest,
        documents: DocumentService = Depends(get_documents),
    ) -> DocumentQuestionsResponse:
        title, questions = documents.questions_for(payload.document_title)
        return DocumentQuestionsResponse(
            document_title=title,
            questions=[
                QuestionModel(id=q.id, question=q.question, field_name=q.field_name, required=q.required)
                for q in questions
            ],
        )

    @app.post("/generate-filled-document", response_model=FillDocumentResponse)
    def generate_filled_document(
        payload: FillDocumentRequest,
        documents: DocumentService = Depends(get_documents),
    ) -> FillDocumentResponse:
        result = documents.generate_filled_document(payload.document_title, payload.responses)
        return FillDocumentResponse(
            message="Document generated successfully" if result.stored else "Document generated but not stored",
            document_id=result.artifact_id,
            document_title=result.title,
            document_content=result.content,
            pdf_base64=base64.b64encode(result.rendered.data).decode("ascii"),
            page_count=result.rendered.page_count,
            review_notes=list(result.review_notes),
        )

    @app.get("/documents/{document_id}", response_model=StoredDocumentResponse)
    def get_document(document_id: str, documents: DocumentService = Depends(get_documents)) -> StoredDocumentResponse:
        artifact = documents.get_artifact(document_id)
        if artifact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        return StoredDocumentResponse(
            document_id=document_id,
            title=artifact.title,
            document_content=artifact.content,
            responses=dict(artifact.responses),
            page_count=artifact.rendered.page_count,
            created_at=artifact.created_at,
        )

    @app.get("/documents/{document_id}/pdf")
    def download_document(document_id: str, documents: DocumentService = Depends(get_documents)) -> Response:
        artifact = documents.get_artifact(document_id)
        if artifact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
        filename = f"{artifact.title or document_id}.pdf".replace('"', "")
        return Response(
            content=artifact.rendered.data,
            media_type=artifact.rendered.media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/templates", response_model=TemplateSummary, status_code=status.HTTP_201_CREATED)
    def create_template(
        payload: TemplateCreateRequest,
        catalog: ChromaTemplateCatalog = Depends(get_catalog),
    ) -> TemplateSummary:
        if not payload.title.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Template title is required")
        template = catalog.add(payload.title, payload.body)
        logger.info("template.created", template_id=template.template_id, normalized_title=template.normalized_title)
        return _template_summary(template)

    @app.get("/templates", response_model=TemplateListResponse)
    def list_templates(catalog: ChromaTemplateCatalog = Depends(get_catalog)) -> TemplateListResponse:
        templates = sorted(catalog.iter_templates(with_body=False), key=lambda t: (t.position, t.template_id))
        return TemplateListResponse(total=len(templates), templates=[_template_summary(t) for t in templates])

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    def healthcheck() -> dict[str, str]:
        from lawsphere import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    def readiness(catalog: ChromaTemplateCatalog = Depends(get_catalog)) -> dict[str, str]:
        try:
            templates = catalog.count()
        except Exception as exc:  # pragma: no cover - store specific errors
            return {"status": "error", "detail": str(exc)}
        return {"status": "ready", "templates": str(templates)}

    return app
