"""Append-only store of chat query/response pairs."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol
from uuid import uuid4

from chromadb.api import ClientAPI

from lawsphere.errors import PersistenceFailure
from lawsphere.models import CachedQuery
from lawsphere.storage.chroma import hash_vector, iter_records, open_collection, parse_timestamp, utc_now


class QueryCacheStore(Protocol):
    """Exact-match cache consulted before text generation."""

    def find_exact(self, query: str) -> CachedQuery | None:
        """Return the cached pair whose normalized query equals ``query``."""

    def append(self, query: str, response: str) -> str:
        """Persist a new pair and return its identifier."""


class ChromaQueryCache:
    """Chroma-backed query cache; timestamps are assigned on write."""

    def __init__(
        self,
        collection_name: str = "legal_queries",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
        page_size: int = 500,
    ) -> None:
        self._collection = open_collection(collection_name, client=client, persist_directory=persist_directory)
        self._page_size = page_size

    def find_exact(self, query: str) -> CachedQuery | None:
        try:
            batch = self._collection.get(where={"query": query}, include=["documents", "metadatas"], limit=1)
        except Exception as exc:
            raise PersistenceFailure(f"Query cache lookup failed: {exc}") from exc
        ids = batch.get("ids") or []
        if not ids:
            return None
        documents = batch.get("documents") or [""]
        metadatas = batch.get("metadatas") or [{}]
        metadata = metadatas[0] or {}
        return CachedQuery(
            record_id=ids[0],
            query=str(metadata.get("query", query)),
            response=documents[0] or "",
            timestamp=parse_timestamp(metadata.get("timestamp")),
        )

    def append(self, query: str, response: str) -> str:
        record_id = uuid4().hex
        try:
            self._collection.add(
                ids=[record_id],
                documents=[response],
                embeddings=[hash_vector(query)],
                metadatas=[{"query": query, "timestamp": utc_now().isoformat()}],
            )
        except Exception as exc:
            raise PersistenceFailure(f"Query cache write failed: {exc}") from exc
        return record_id

    def iter_records(self) -> Iterator[CachedQuery]:
        for record_id, document, metadata in iter_records(self._collection, page_size=self._page_size):
            yield CachedQuery(
                record_id=record_id,
                query=str(metadata.get("query", "")),
                response=document,
                timestamp=parse_timestamp(metadata.get("timestamp")),
            )

    def count(self) -> int:
        try:
            return int(self._collection.count())
        except Exception:
            return 0
