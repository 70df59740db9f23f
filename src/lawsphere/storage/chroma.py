"""Chroma plumbing shared by the catalog, query cache and artifact stores.

All LawSphere lookups are exact metadata matches, so records carry a small
deterministic hash vector instead of a model embedding.
"""

from __future__ import annotations

import hashlib
import json
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Sequence, Tuple

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection

from lawsphere.config import Settings

VECTOR_DIM = 8

Record = Tuple[str, str, Mapping[str, Any]]


def build_client(settings: Settings) -> ClientAPI:
    """Remote client when ``chroma_host`` is set, else a persistent local one."""

    if settings.chroma_host:
        return chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port or 8000,
            ssl=settings.chroma_ssl,
        )
    return chromadb.PersistentClient(path=str(settings.chroma_persist_dir))


def open_collection(
    collection_name: str,
    *,
    client: ClientAPI | None = None,
    persist_directory: str | Path | None = None,
) -> Collection:
    if client is None:
        if persist_directory is not None:
            client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            client = chromadb.EphemeralClient()
    return client.get_or_create_collection(name=collection_name)


def hash_vector(text: str, dim: int = VECTOR_DIM) -> list[float]:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    repeat = (dim + len(digest) - 1) // len(digest)
    raw = (digest * repeat)[:dim]
    vector = [byte / 255.0 + 1e-6 for byte in raw]
    norm = math.sqrt(sum(v * v for v in vector))
    return [v / norm for v in vector]


def iter_records(
    collection: Collection,
    *,
    where: Mapping[str, Any] | None = None,
    page_size: int = 500,
    include: Sequence[str] = ("documents", "metadatas"),
) -> Iterator[Record]:
    """Yield ``(id, document, metadata)`` one page at a time.

    When ``include`` leaves out ``"documents"`` the document is yielded as ``""``.
    """

    offset = 0
    while True:
        batch = collection.get(
            where=dict(where) if where else None,
            include=list(include),
            limit=page_size,
            offset=offset,
        )
        ids = batch.get("ids") or []
        if not ids:
            return
        documents = batch.get("documents") or [""] * len(ids)
        metadatas = batch.get("metadatas") or [{}] * len(ids)
        for record_id, document, metadata in zip(ids, documents, metadatas, strict=False):
            yield record_id, document or "", metadata or {}
        if len(ids) < page_size:
            return
        offset += page_size


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def dumps(value: object) -> str:
    try:
        return json.dumps(value, default=str)
    except TypeError:
        return json.dumps({}, default=str)


def loads_dict(value: object) -> Dict[str, Any]:
    if isinstance(value, str) and value:
        try:
            loaded = json.loads(value)
            if isinstance(loaded, dict):
                return loaded
        except json.JSONDecodeError:
            return {}
    if isinstance(value, Mapping):
        return dict(value)
    return {}
