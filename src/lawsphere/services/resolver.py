"""Match requested document titles against the template catalog."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from lawsphere.config import DEFAULT_TEMPLATE_EXTENSIONS
from lawsphere.errors import TemplateAmbiguous, TemplateNotFound
from lawsphere.metrics.observability import PipelineMetrics, get_logger
from lawsphere.models import Template
from lawsphere.storage.catalog import TemplateCatalog
from lawsphere.titles import normalize_title, title_key


@dataclass(frozen=True)
class ResolverConfig:
    """Configuration for template resolution."""

    extensions: Sequence[str] = DEFAULT_TEMPLATE_EXTENSIONS
    default_extension: str = ".pdf"
    ambiguous_policy: Literal["first", "reject"] = "first"
    diagnostic_title_limit: int = 200


class TemplateResolver:
    """Resolves a raw title to exactly one template or raises.

    Matching goes through the catalog's indexed lookup. The catalog is only
    paged through when nothing matched, to list the available titles.
    """

    def __init__(self, catalog: TemplateCatalog, config: ResolverConfig | None = None) -> None:
        self._catalog = catalog
        self._config = config or ResolverConfig()
        self._logger = get_logger("resolver")

    def normalize(self, raw_title: str) -> str:
        return normalize_title(raw_title, self._config.extensions)

    def resolve(self, raw_title: str) -> Template:
        key = self.normalize(raw_title)
        matches: Sequence[Template] = []
        if key:
            candidates = (key, f"{key}{self._config.default_extension.casefold()}")
            matches = [
                template
                for template in self._catalog.find_matching(key, candidates)
                if self._matches(template, candidates)
            ]
        if not matches:
            available, truncated = self.available_titles()
            PipelineMetrics.record_resolution("not_found")
            self._logger.warning(
                "resolver.not_found",
                requested=raw_title,
                normalized_title=key,
                available_titles=available,
            )
            raise TemplateNotFound(key, available, truncated=truncated)
        if len(matches) > 1:
            titles = [template.title for template in matches]
            if self._config.ambiguous_policy == "reject":
                PipelineMetrics.record_resolution("ambiguous")
                self._logger.warning("resolver.ambiguous", normalized_title=key, candidates=titles)
                raise TemplateAmbiguous(key, titles)
            self._logger.warning(
                "resolver.ambiguous_first",
                normalized_title=key,
                candidates=titles,
                chosen=matches[0].template_id,
            )
        PipelineMetrics.record_resolution("matched")
        template = matches[0]
        self._logger.info("resolver.matched", normalized_title=key, template_id=template.template_id)
        return template

    def available_titles(self) -> tuple[list[str], bool]:
        """Sorted unique normalized titles, capped at the diagnostic limit."""

        limit = self._config.diagnostic_title_limit
        seen: set[str] = set()
        truncated = False
        for template in self._catalog.iter_templates(with_body=False):
            title = template.normalized_title or self.normalize(template.title)
            if title in seen:
                continue
            if len(seen) >= limit:
                truncated = True
                break
            seen.add(title)
        return sorted(seen), truncated

    def _matches(self, template: Template, candidates: Sequence[str]) -> bool:
        # the catalog query is a prefilter; never hand back a non-matching template
        if self.normalize(template.title) == candidates[0]:
            return True
        return title_key(template.title) in candidates
