"""Observability helpers for LawSphere."""

from __future__ import annotations

import logging

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "lawsphere") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for chat and document pipeline stages."""

    generation_latency = Histogram(
        "lawsphere_generation_duration_seconds",
        "Time spent waiting on the text generation service.",
        ["task"],
        buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    )
    render_latency = Histogram(
        "lawsphere_render_duration_seconds",
        "Time spent rendering filled documents.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5),
    )
    rendered_pages = Histogram(
        "lawsphere_rendered_page_count",
        "Pages per rendered document.",
        buckets=(1, 2, 3, 5, 8, 13, 21),
    )
    chat_cache_lookups = Counter(
        "lawsphere_chat_cache_lookups_total",
        "Chat cache lookups by outcome.",
        ["outcome"],
    )
    resolver_outcomes = Counter(
        "lawsphere_template_resolution_total",
        "Template resolution attempts by outcome.",
        ["outcome"],
    )
    persistence_failures = Counter(
        "lawsphere_persistence_failures_total",
        "Best-effort store writes that failed.",
        ["store"],
    )

    @classmethod
    def observe_generation(cls, task: str, duration_seconds: float) -> None:
        cls.generation_latency.labels(task=task).observe(duration_seconds)

    @classmethod
    def observe_render(cls, duration_seconds: float, page_count: int) -> None:
        cls.render_latency.observe(duration_seconds)
        cls.rendered_pages.observe(page_count)

    @classmethod
    def record_cache_lookup(cls, outcome: str) -> None:
        cls.chat_cache_lookups.labels(outcome=outcome).inc()

    @classmethod
    def record_resolution(cls, outcome: str) -> None:
        cls.resolver_outcomes.labels(outcome=outcome).inc()

    @classmethod
    def record_persistence_failure(cls, store: str) -> None:
        cls.persistence_failures.labels(store=store).inc()


__all__ = [
    "PipelineMetrics",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
