"""Load template files into the catalog through LangChain document loaders."""

from __future__ import annotations

import re
import time
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Protocol, Sequence

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader, TextLoader
from langchain_community.document_loaders.base import BaseLoader

from lawsphere.metrics.observability import get_logger
from lawsphere.models import Template


class TemplateImportError(RuntimeError):
    """Raised when a template file cannot be read."""


class UnsupportedTemplateTypeError(TemplateImportError):
    """Raised when a template file extension has no loader."""


class TemplateSink(Protocol):
    def add(self, title: str, body: str = "", metadata: Mapping[str, object] | None = None) -> Template:
        """Store a template and return it."""


@dataclass(frozen=True)
class LoaderConfig:
    encoding: str = "utf-8"
    keep_extension_in_title: bool = True


def _normalize_text(raw: str) -> str:
    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ")
    normalized = re.sub(r"[ \t]+", " ", normalized)
    normalized = re.sub(r"\n{3,}", "\n\n", normalized)
    return normalized.strip()


class TemplateFileLoader:
    """Reads template files and adds them to a catalog.

    The file name becomes the template title. By default the extension is
    kept, the way hand-maintained catalogs tend to store titles; the
    resolver's normalization tolerates either form.
    """

    _LOADERS: Mapping[str, type[BaseLoader]] = {
        ".pdf": PyPDFLoader,
        ".docx": Docx2txtLoader,
        ".txt": TextLoader,
        ".md": TextLoader,
    }

    _logger = get_logger("catalog")

    def __init__(self, catalog: TemplateSink, config: LoaderConfig | None = None) -> None:
        self._catalog = catalog
        self._config = config or LoaderConfig()

    @classmethod
    def supported_extensions(cls) -> tuple[str, ...]:
        return tuple(sorted(cls._LOADERS))

    def load(self, paths: Sequence[Path]) -> List[Template]:
        return [self._load_single(Path(path)) for path in paths]

    def read_body(self, path: Path) -> str:
        suffix = path.suffix.lower()
        loader_cls = self._LOADERS.get(suffix)
        if loader_cls is None:
            raise UnsupportedTemplateTypeError(f"Unsupported template type: {suffix or '<none>'}")
        try:
            loader = self._build_loader(loader_cls, path)
            documents = loader.load()
        except Exception as exc:  # pragma: no cover - loader specific errors
            raise TemplateImportError(f"Failed to load {path}: {exc}") from exc
        return "\n\n".join(_normalize_text(document.page_content) for document in documents).strip()

    def _load_single(self, path: Path) -> Template:
        start = time.perf_counter()
        body = self.read_body(path)
        title = path.name if self._config.keep_extension_in_title else path.stem
        template = self._catalog.add(title, body, {"source": str(path), "media_type": path.suffix.lower().lstrip(".")})
        self._logger.info(
            "catalog.template_imported",
            path=str(path),
            title=title,
            normalized_title=template.normalized_title,
            body_chars=len(body),
            duration_seconds=time.perf_counter() - start,
        )
        return template

    def _build_loader(self, loader_cls: type[BaseLoader], path: Path) -> BaseLoader:
        if loader_cls is TextLoader:
            return loader_cls(str(path), encoding=self._config.encoding)
        return loader_cls(str(path))
