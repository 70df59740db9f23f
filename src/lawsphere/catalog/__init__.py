"""Template catalog import tooling."""

from .loader import (
    LoaderConfig,
    TemplateFileLoader,
    TemplateImportError,
    UnsupportedTemplateTypeError,
)

__all__ = [
    "LoaderConfig",
    "TemplateFileLoader",
    "TemplateImportError",
    "UnsupportedTemplateTypeError",
]
