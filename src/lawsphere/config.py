"""Runtime configuration for the LawSphere services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TEMPLATE_EXTENSIONS: tuple[str, ...] = (".pdf", ".doc", ".docx")


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="lawsphere_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Document stores
    chroma_persist_dir: Path = Path("./.chroma")
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False
    templates_collection: str = "legal_documents"
    query_cache_collection: str = "legal_queries"
    artifacts_collection: str = "filled_documents"
    store_page_size: int = 500

    # Text generation
    generator_backend: Literal["offline", "qwen", "gemini"] = "offline"
    generator_model: str = "Qwen/Qwen2.5-1.8B-Instruct"
    generator_max_new_tokens: int = 1024
    generator_temperature: float = 0.3
    generator_device: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    google_api_key: str | None = None

    # Template resolution
    template_extensions: tuple[str, ...] | str = DEFAULT_TEMPLATE_EXTENSIONS
    default_template_extension: str = ".pdf"
    ambiguous_template_policy: Literal["first", "reject"] = "first"
    diagnostic_title_limit: int = 200

    # Question schema
    schema_min_questions: int = 5
    schema_max_questions: int = 10

    # Chat
    context_window_turns: int = 10
    max_sessions: int = 1000
    create_doc_threshold: int = 50
    assistant_persona: str = (
        "You are a legal advice assistant. Provide concise, practical legal advice "
        "without disclaimers or lengthy explanations. Maintain the conversation context."
    )

    # Rendering
    render_title_font_size: int = 16
    render_body_font_size: int = 12

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = True
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "DELETE", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    @property
    def template_extensions_tuple(self) -> tuple[str, ...]:
        value = self.template_extensions
        if isinstance(value, tuple):
            parts = value
        elif isinstance(value, str):
            parts = tuple(p.strip() for p in value.split(",") if p.strip())
        else:
            parts = ()
        normalized = tuple(p.lower() if p.startswith(".") else f".{p.lower()}" for p in parts)
        return normalized or DEFAULT_TEMPLATE_EXTENSIONS


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
