"""Template catalog backed by a Chroma collection."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol, Sequence
from uuid import uuid4

from chromadb.api import ClientAPI

from lawsphere.config import DEFAULT_TEMPLATE_EXTENSIONS
from lawsphere.errors import UpstreamUnavailable
from lawsphere.models import Template
from lawsphere.storage.chroma import dumps, hash_vector, iter_records, loads_dict, open_collection
from lawsphere.titles import normalize_title, title_key


class TemplateCatalog(Protocol):
    """Read side of the template catalog used by the resolver."""

    def find_matching(self, normalized_title: str, title_keys: Sequence[str]) -> Sequence[Template]:
        """Return templates whose normalized title or raw title key matches, in catalog order."""

    def iter_templates(self, *, page_size: int | None = None, with_body: bool = True) -> Iterator[Template]:
        """Yield every template, one storage page at a time.

        With ``with_body=False`` only metadata is fetched and ``body`` is empty.
        """


class ChromaTemplateCatalog:
    """Chroma-backed catalog of named document templates.

    Each record keeps the raw ``title``, its ``title_key`` (trimmed and
    case-folded) and ``normalized_title`` as metadata so lookups are indexed
    filters rather than full scans. ``position`` is assigned on insert and is
    the stable order used to break ties between matching templates.
    """

    def __init__(
        self,
        collection_name: str = "legal_documents",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
        extensions: Sequence[str] = DEFAULT_TEMPLATE_EXTENSIONS,
        page_size: int = 500,
    ) -> None:
        self._collection = open_collection(collection_name, client=client, persist_directory=persist_directory)
        self._extensions = tuple(extensions)
        self._page_size = page_size
        self._write_lock = threading.Lock()

    def add(self, title: str, body: str = "", metadata: Mapping[str, Any] | None = None) -> Template:
        if not title or not title.strip():
            raise ValueError("Template title must not be empty")
        template_id = uuid4().hex
        normalized = normalize_title(title, self._extensions)
        with self._write_lock:
            position = self._next_position()
            self._collection.add(
                ids=[template_id],
                documents=[body or ""],
                embeddings=[hash_vector(normalized)],
                metadatas=[
                    {
                        "title": title,
                        "title_key": title_key(title),
                        "normalized_title": normalized,
                        "position": position,
                        "extra": dumps(dict(metadata or {})),
                    }
                ],
            )
        return Template(
            template_id=template_id,
            title=title,
            normalized_title=normalized,
            body=body or "",
            position=position,
            metadata=dict(metadata or {}),
        )

    def find_matching(self, normalized_title: str, title_keys: Sequence[str]) -> Sequence[Template]:
        keys = sorted({key for key in title_keys if key})
        where: dict[str, Any] = {"normalized_title": normalized_title}
        if keys:
            where = {"$or": [{"normalized_title": normalized_title}, {"title_key": {"$in": keys}}]}
        try:
            matches = [
                self._to_template(record_id, document, metadata)
                for record_id, document, metadata in iter_records(
                    self._collection, where=where, page_size=self._page_size
                )
            ]
        except Exception as exc:
            raise UpstreamUnavailable(f"Template catalog lookup failed: {exc}") from exc
        return sorted(matches, key=lambda template: (template.position, template.template_id))

    def iter_templates(self, *, page_size: int | None = None, with_body: bool = True) -> Iterator[Template]:
        include = ("documents", "metadatas") if with_body else ("metadatas",)
        try:
            for record_id, document, metadata in iter_records(
                self._collection, page_size=page_size or self._page_size, include=include
            ):
                yield self._to_template(record_id, document, metadata)
        except Exception as exc:
            raise UpstreamUnavailable(f"Template catalog listing failed: {exc}") from exc

    def count(self) -> int:
        try:
            return int(self._collection.count())
        except Exception:
            return 0

    def reset(self) -> None:
        ids = [record_id for record_id, _, _ in iter_records(self._collection, page_size=self._page_size)]
        if ids:
            self._collection.delete(ids=ids)

    def _next_position(self) -> int:
        # deletions can repeat a position; ties fall back to template_id
        return int(self._collection.count())

    @staticmethod
    def _to_template(record_id: str, document: str, metadata: Mapping[str, Any]) -> Template:
        title = str(metadata.get("title", ""))
        return Template(
            template_id=record_id,
            title=title,
            normalized_title=str(metadata.get("normalized_title") or normalize_title(title)),
            body=document,
            position=int(metadata.get("position", 0)),
            metadata=loads_dict(metadata.get("extra")),
        )
