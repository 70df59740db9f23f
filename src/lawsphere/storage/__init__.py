"""Persistence for templates, cached chat queries and generated documents."""

from .artifacts import ArtifactStore, ChromaArtifactStore
from .cache import ChromaQueryCache, QueryCacheStore
from .catalog import ChromaTemplateCatalog, TemplateCatalog
from .chroma import build_client

__all__ = [
    "ArtifactStore",
    "ChromaArtifactStore",
    "ChromaQueryCache",
    "ChromaTemplateCatalog",
    "QueryCacheStore",
    "TemplateCatalog",
    "build_client",
]
