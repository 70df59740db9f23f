"""Service layer orchestrations for LawSphere."""

from .conversation import ConversationCache, ConversationConfig, ConversationWindow, SessionRegistry
from .documents import DocumentService
from .filler import DocumentFiller
from .generation import (
    GeminiTextGenerator,
    GenerationConfig,
    OfflineTextGenerator,
    QwenTextGenerator,
    TextGenerator,
    build_text_generator,
)
from .questions import ParsedSchema, QuestionSchemaGenerator, UnparseableSchema, parse_question_schema
from .rendering import PdfRenderer, RenderConfig
from .resolver import ResolverConfig, TemplateResolver

__all__ = [
    "ConversationCache",
    "ConversationConfig",
    "ConversationWindow",
    "DocumentFiller",
    "DocumentService",
    "GeminiTextGenerator",
    "GenerationConfig",
    "OfflineTextGenerator",
    "ParsedSchema",
    "PdfRenderer",
    "QuestionSchemaGenerator",
    "QwenTextGenerator",
    "RenderConfig",
    "ResolverConfig",
    "SessionRegistry",
    "TemplateResolver",
    "TextGenerator",
    "UnparseableSchema",
    "build_text_generator",
    "parse_question_schema",
]
