"""Title normalization shared by the catalog and the resolver."""

from __future__ import annotations

import re
import unicodedata
from typing import Sequence

from lawsphere.config import DEFAULT_TEMPLATE_EXTENSIONS

_WHITESPACE = re.compile(r"\s+")


def _collapse(raw: str) -> str:
    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ")
    return _WHITESPACE.sub(" ", normalized).strip()


def title_key(raw: str) -> str:
    """Trimmed, case-folded title with its extension kept."""

    return _collapse(raw).casefold()


def normalize_title(raw: str, extensions: Sequence[str] = DEFAULT_TEMPLATE_EXTENSIONS) -> str:
    """Return the matching key for a template or request title.

    Recognized extensions are stripped case-insensitively until none remain,
    so ``normalize_title(normalize_title(x)) == normalize_title(x)``.
    """

    value = title_key(raw or "")
    suffixes = tuple(ext.casefold() for ext in extensions if ext)
    stripped = True
    while stripped and value:
        stripped = False
        for suffix in suffixes:
            if value.endswith(suffix):
                value = value[: -len(suffix)].strip()
                stripped = True
                break
    return value
