"""Render capacity assessment reports to PDF."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


class PDFExportError(RuntimeError):
    """Raised when an assessment PDF cannot be generated."""


@dataclass(slots=True)
class _RenderBlock:
    """Represents a logical block of content to render."""

    kind: str
    text: str = ""
    rows: Optional[list[list[str]]] = None


class AssessmentPDFExporter:
    """Lay out the Markdown report (headings, bullets, tables) with fpdf2."""

    _BULLET_RE = re.compile(r"^\s*[-*]\s+(?P<text>.+)$")

    _UNICODE_TRANSLATION = str.maketrans(
        {
            "\u00a0": " ",  # non-breaking space
            "\u2013": "-",  # en dash
            "\u2014": "-",  # em dash
            "\u2018": "'",  # left single quote
            "\u2019": "'",  # right single quote
            "\u201c": '"',  # left double quote
            "\u201d": '"',  # right double quote
        }
    )

    def __init__(self, title: str = "Capacity Assessment") -> None:
        self._title = title

    def export(self, markdown_text: str, destination: Path) -> Path:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - filesystem guard
            raise PDFExportError(
                f"Unable to create directory for PDF export: {destination}"
            ) from exc

        try:
            from fpdf import FPDF  # type: ignore[import]
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise PDFExportError(
                "fpdf2 is required to export assessments as PDF."
            ) from exc

        pdf: Any = FPDF(unit="mm", format="A4")
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.set_margin(15)
        pdf.add_page()
        pdf.set_title(self._title)

        for block in self._iter_blocks(markdown_text):
            self._render_block(pdf, block)

        try:
            pdf.output(str(destination))
        except (OSError, RuntimeError) as exc:
            raise PDFExportError(
                f"Unable to write assessment PDF: {destination}"
            ) from exc
        return destination

    def _iter_blocks(self, markdown_text: str) -> Iterator[_RenderBlock]:
        table_buffer: list[list[str]] = []

        for line in markdown_text.splitlines():
            stripped = line.strip()

            if stripped.startswith("|"):
                cells = [cell.strip() for cell in stripped.strip("|").split("|")]
                if all(not cell.replace("-", "").strip() for cell in cells):
                    continue
                table_buffer.append(cells)
                continue

            if table_buffer:
                yield _RenderBlock(kind="table", rows=table_buffer)
                table_buffer = []

            if not stripped:
                yield _RenderBlock(kind="blank")
            elif stripped.startswith("## "):
                yield _RenderBlock(kind="heading2", text=stripped[3:])
            elif stripped.startswith("# "):
                yield _RenderBlock(kind="heading1", text=stripped[2:])
            else:
                bullet_match = self._BULLET_RE.match(line)
                if bullet_match:
                    yield _RenderBlock(kind="bullet", text=bullet_match.group("text"))
                else:
                    yield _RenderBlock(kind="paragraph", text=stripped)

        if table_buffer:
            yield _RenderBlock(kind="table", rows=table_buffer)

    def _render_block(self, pdf: Any, block: _RenderBlock) -> None:
        if block.kind == "blank":
            pdf.ln(4)
            return

        if block.kind in {"heading1", "heading2"}:
            pdf.set_font("Helvetica", "B", size=18 if block.kind == "heading1" else 14)
            pdf.set_x(pdf.l_margin)
            pdf.multi_cell(0, 8, self._safe_text(block.text))
            pdf.ln(2)
            pdf.set_font("Helvetica", size=11)
            return

        if block.kind == "table":
            self._render_table(pdf, block.rows or [])
            pdf.ln(2)
            return

        pdf.set_font("Helvetica", size=11)
        pdf.set_x(pdf.l_margin)
        text = f"- {block.text}" if block.kind == "bullet" else block.text
        pdf.multi_cell(0, 6, self._safe_text(text))
        pdf.ln(1)

    def _render_table(self, pdf: Any, rows: list[list[str]]) -> None:
        if not rows:
            return
        column_count = len(rows[0])
        available_width = pdf.w - pdf.l_margin - pdf.r_margin
        # Description column takes the slack.
        narrow = available_width * 0.16
        widths = [narrow] * column_count
        if column_count > 1:
            widths[1] = available_width - narrow * (column_count - 1)
        pdf.set_x(pdf.l_margin)
        for index, row in enumerate(rows):
            self._draw_table_row(pdf, row[:column_count], widths, header=index == 0)

    def _draw_table_row(
        self,
        pdf: Any,
        cells: list[str],
        widths: list[float],
        *,
        header: bool,
    ) -> None:
        line_height = 7 if header else 6
        pdf.set_font("Helvetica", "B" if header else "", size=10 if header else 9)
        max_height = line_height
        for text, width in zip(cells, widths):
            lines = pdf.multi_cell(
                width - 3,
                line_height,
                self._safe_text(text),
                dry_run=True,
                output="LINES",
            )
            max_height = max(max_height, line_height * max(1, len(lines)))
        max_height += 2

        y_start = pdf.get_y()
        if y_start + max_height > pdf.h - pdf.b_margin:
            pdf.add_page()
            y_start = pdf.get_y()
        x_cursor = pdf.l_margin
        for text, width in zip(cells, widths):
            pdf.rect(x_cursor, y_start, width, max_height)
            pdf.set_xy(x_cursor + 1.5, y_start + 1.5)
            pdf.multi_cell(
                width - 3,
                line_height,
                self._safe_text(text),
                border=0,
                new_x="LEFT",
                new_y="TOP",
            )
            x_cursor += width
        pdf.set_xy(pdf.l_margin, y_start + max_height)

    @classmethod
    def _safe_text(cls, text: str) -> str:
        text = text.replace("**", "").translate(cls._UNICODE_TRANSLATION)
        try:
            text.encode("latin-1")
        except UnicodeEncodeError:
            logger.debug("Replacing characters outside latin-1 in PDF text.")
            return text.encode("latin-1", "replace").decode("latin-1")
        return text
