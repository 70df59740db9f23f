"""Template resolution against the catalog."""

from __future__ import annotations

from typing import Iterator, Sequence
from uuid import uuid4

import chromadb
import pytest

from lawsphere.errors import TemplateAmbiguous, TemplateNotFound
from lawsphere.models import Template
from lawsphere.services.resolver import ResolverConfig, TemplateResolver
from lawsphere.storage.catalog import ChromaTemplateCatalog
from lawsphere.titles import normalize_title


def _catalog(*titles: str) -> ChromaTemplateCatalog:
    catalog = ChromaTemplateCatalog(f"templates-{uuid4().hex}", client=chromadb.EphemeralClient())
    for title in titles:
        catalog.add(title, body=f"Body of {title}")
    return catalog


class CountingCatalog:
    """In-memory catalog that records how it is queried."""

    def __init__(self, titles: Sequence[str]) -> None:
        self.templates = [
            Template(template_id=f"t{i}", title=title, normalized_title=normalize_title(title), position=i)
            for i, title in enumerate(titles)
        ]
        self.lookups = 0
        self.scans = 0
        self.body_scans = 0

    def find_matching(self, normalized_title: str, title_keys: Sequence[str]) -> Sequence[Template]:
        self.lookups += 1
        return [t for t in self.templates if t.normalized_title == normalized_title]

    def iter_templates(self, *, page_size: int | None = None, with_body: bool = True) -> Iterator[Template]:
        self.scans += 1
        self.body_scans += int(with_body)
        yield from self.templates


class SloppyCatalog(CountingCatalog):
    """Returns every template regardless of the key."""

    def find_matching(self, normalized_title: str, title_keys: Sequence[str]) -> Sequence[Template]:
        self.lookups += 1
        return list(self.templates)


def test_request_matches_catalog_title_with_extension():
    catalog = _catalog("NDA Agreement.pdf", "Lease Agreement.pdf")
    template = TemplateResolver(catalog).resolve("nda agreement")
    assert template.title == "NDA Agreement.pdf"
    assert template.normalized_title == "nda agreement"


def test_request_with_extension_matches_bare_catalog_title():
    catalog = _catalog("Last Will")
    template = TemplateResolver(catalog).resolve("  LAST WILL.pdf ")
    assert template.title == "Last Will"


def test_not_found_reports_normalized_request_and_available_titles():
    catalog = _catalog("NDA Agreement.pdf", "Lease Agreement.doc", "nda agreement")
    with pytest.raises(TemplateNotFound) as excinfo:
        TemplateResolver(catalog).resolve("Employment Contract.pdf")
    error = excinfo.value
    assert error.normalized_title == "employment contract"
    assert error.available_titles == ["lease agreement", "nda agreement"]
    assert "Available titles: lease agreement, nda agreement" in str(error)


def test_empty_title_is_not_found():
    catalog = _catalog("NDA Agreement.pdf")
    with pytest.raises(TemplateNotFound) as excinfo:
        TemplateResolver(catalog).resolve(" .pdf ")
    assert excinfo.value.normalized_title == ""


def test_diagnostic_titles_are_capped():
    catalog = CountingCatalog([f"Template {i}" for i in range(5)])
    resolver = TemplateResolver(catalog, ResolverConfig(diagnostic_title_limit=3))
    with pytest.raises(TemplateNotFound) as excinfo:
        resolver.resolve("missing")
    assert len(excinfo.value.available_titles) == 3
    assert excinfo.value.truncated
    assert catalog.body_scans == 0


def test_ambiguous_match_takes_first_in_catalog_order():
    catalog = _catalog("NDA Agreement.pdf", "nda agreement", "NDA AGREEMENT.doc")
    template = TemplateResolver(catalog).resolve("NDA Agreement")
    assert template.title == "NDA Agreement.pdf"
    assert template.position == 0


def test_ambiguous_match_rejected_when_configured():
    catalog = _catalog("NDA Agreement.pdf", "nda agreement")
    resolver = TemplateResolver(catalog, ResolverConfig(ambiguous_policy="reject"))
    with pytest.raises(TemplateAmbiguous) as excinfo:
        resolver.resolve("nda agreement")
    assert excinfo.value.candidates == ["NDA Agreement.pdf", "nda agreement"]


def test_successful_resolution_does_not_scan_catalog():
    # a hit must stay an indexed lookup, whatever the catalog size
    catalog = CountingCatalog([f"Template {i}" for i in range(1000)] + ["NDA Agreement.pdf"])
    template = TemplateResolver(catalog).resolve("nda agreement")
    assert template.title == "NDA Agreement.pdf"
    assert catalog.lookups == 1
    assert catalog.scans == 0


def test_never_returns_non_matching_template():
    catalog = SloppyCatalog(["Lease Agreement.pdf", "Will.pdf"])
    with pytest.raises(TemplateNotFound):
        TemplateResolver(catalog).resolve("nda agreement")


@pytest.mark.parametrize(
    "request_title",
    ["nda agreement", "NDA Agreement.pdf", "will", "Lease", "power of attorney.docx", ""],
)
def test_resolution_is_total(request_title: str):
    catalog = CountingCatalog(["NDA Agreement.pdf", "nda agreement.doc", "Will", "Power of Attorney"])
    resolver = TemplateResolver(catalog, ResolverConfig(ambiguous_policy="reject"))
    key = normalize_title(request_title)
    try:
        template = resolver.resolve(request_title)
    except TemplateNotFound as exc:
        assert not any(t.normalized_title == key for t in catalog.templates) or not key
        assert exc.available_titles
    except TemplateAmbiguous as exc:
        assert len(exc.candidates) > 1
    else:
        assert template.normalized_title == key
