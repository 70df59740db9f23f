"""Durable storage for generated documents."""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol
from uuid import uuid4

from chromadb.api import ClientAPI

from lawsphere.errors import PersistenceFailure
from lawsphere.models import GeneratedArtifact, RenderedDocument
from lawsphere.storage.chroma import (
    dumps,
    hash_vector,
    iter_records,
    loads_dict,
    open_collection,
    parse_timestamp,
    utc_now,
)


class ArtifactStore(Protocol):
    """Persistence for filled documents and their provenance."""

    def append(self, artifact: GeneratedArtifact) -> str:
        """Persist ``artifact`` and return its durable identifier."""

    def get(self, artifact_id: str) -> GeneratedArtifact | None:
        """Return the stored artifact or ``None`` when unknown."""


class ChromaArtifactStore:
    """Chroma-backed artifact store.

    The rendered PDF is kept base64-encoded alongside the title, the original
    responses and a creation timestamp assigned here, on write.
    """

    def __init__(
        self,
        collection_name: str = "filled_documents",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
        page_size: int = 100,
    ) -> None:
        self._collection = open_collection(collection_name, client=client, persist_directory=persist_directory)
        self._page_size = page_size

    def append(self, artifact: GeneratedArtifact) -> str:
        artifact_id = uuid4().hex
        metadata = {
            "title": artifact.title,
            "pdf_base64": base64.b64encode(artifact.rendered.data).decode("ascii"),
            "media_type": artifact.rendered.media_type,
            "page_count": artifact.rendered.page_count,
            "responses": dumps(dict(artifact.responses)),
            "created_at": utc_now().isoformat(),
        }
        try:
            self._collection.add(
                ids=[artifact_id],
                documents=[artifact.content],
                embeddings=[hash_vector(artifact_id)],
                metadatas=[metadata],
            )
        except Exception as exc:
            raise PersistenceFailure(f"Artifact write failed: {exc}") from exc
        return artifact_id

    def get(self, artifact_id: str) -> GeneratedArtifact | None:
        try:
            batch = self._collection.get(ids=[artifact_id], include=["documents", "metadatas"])
        except Exception as exc:
            raise PersistenceFailure(f"Artifact read failed: {exc}") from exc
        ids = batch.get("ids") or []
        if not ids:
            return None
        documents = batch.get("documents") or [""]
        metadatas = batch.get("metadatas") or [{}]
        return self._to_artifact(ids[0], documents[0] or "", metadatas[0] or {})

    def iter_artifacts(self) -> Iterator[GeneratedArtifact]:
        for record_id, document, metadata in iter_records(self._collection, page_size=self._page_size):
            yield self._to_artifact(record_id, document, metadata)

    def count(self) -> int:
        try:
            return int(self._collection.count())
        except Exception:
            return 0

    @staticmethod
    def _to_artifact(artifact_id: str, content: str, metadata: Mapping[str, Any]) -> GeneratedArtifact:
        try:
            data = base64.b64decode(str(metadata.get("pdf_base64", "")), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PersistenceFailure(f"Stored artifact {artifact_id} has corrupt document bytes") from exc
        responses = {str(k): str(v) for k, v in loads_dict(metadata.get("responses")).items()}
        return GeneratedArtifact(
            title=str(metadata.get("title", "")),
            content=content,
            rendered=RenderedDocument(
                data=data,
                page_count=int(metadata.get("page_count", 0)),
                media_type=str(metadata.get("media_type", "application/pdf")),
            ),
            responses=responses,
            created_at=parse_timestamp(metadata.get("created_at")),
            artifact_id=artifact_id,
        )
