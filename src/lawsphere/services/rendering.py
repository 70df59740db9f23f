"""Render filled documents to paginated PDF bytes with reportlab."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from io import BytesIO
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import Flowable, Paragraph, SimpleDocTemplate, Spacer

from lawsphere.errors import RenderError
from lawsphere.metrics.observability import PipelineMetrics, get_logger
from lawsphere.models import RenderedDocument

_BLANK_LINES = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class RenderConfig:
    """Page layout for rendered documents."""

    title_font_size: int = 16
    body_font_size: int = 12
    margin_inches: float = 1.0


class PdfRenderer:
    """Centered title heading followed by the body text, on Letter pages.

    Wrapping and pagination come from reportlab's platypus layout. ``render``
    returns only once the document build has finished, so the returned bytes
    are always a complete PDF.
    """

    def __init__(self, config: RenderConfig | None = None) -> None:
        self._config = config or RenderConfig()
        self._title_style = ParagraphStyle(
            "DocumentTitle",
            fontName="Helvetica-Bold",
            fontSize=self._config.title_font_size,
            leading=self._config.title_font_size * 1.25,
            alignment=TA_CENTER,
        )
        self._body_style = ParagraphStyle(
            "DocumentBody",
            fontName="Helvetica",
            fontSize=self._config.body_font_size,
            leading=self._config.body_font_size * 1.25,
            spaceAfter=self._config.body_font_size * 0.5,
        )
        self._logger = get_logger("rendering")

    def render(self, title: str, content: str) -> RenderedDocument:
        start = time.perf_counter()
        buffer = BytesIO()
        pages: List[int] = []

        def on_page(canvas, doc) -> None:
            page = canvas.getPageNumber()
            pages.append(page)
            canvas.saveState()
            canvas.setFont("Helvetica", 9)
            canvas.drawCentredString(LETTER[0] / 2, 0.5 * inch, f"Page {page}")
            canvas.restoreState()

        margin = self._config.margin_inches * inch
        document = SimpleDocTemplate(
            buffer,
            pagesize=LETTER,
            title=title,
            leftMargin=margin,
            rightMargin=margin,
            topMargin=margin,
            bottomMargin=margin,
        )
        try:
            document.build(self._story(title, content), onFirstPage=on_page, onLaterPages=on_page)
        except Exception as exc:
            self._logger.error("render.failed", title=title, error=str(exc))
            raise RenderError(f'Failed to render "{title}": {exc}') from exc
        data = buffer.getvalue()
        page_count = max(pages) if pages else 0
        duration = time.perf_counter() - start
        PipelineMetrics.observe_render(duration, page_count)
        self._logger.info("render.complete", title=title, pages=page_count, size_bytes=len(data))
        return RenderedDocument(data=data, page_count=page_count)

    def _story(self, title: str, content: str) -> List[Flowable]:
        story: List[Flowable] = [Paragraph(escape(title), self._title_style), Spacer(1, self._config.body_font_size)]
        for block in _BLANK_LINES.split(content.replace("\r\n", "\n")):
            block = block.strip("\n")
            if not block.strip():
                continue
            markup = "<br/>".join(escape(line) for line in block.split("\n"))
            story.append(Paragraph(markup, self._body_style))
        return story
