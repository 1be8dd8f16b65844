"""
Paginated document (PDF) encoder built on reportlab.

Renders a landscape A4 report: a title, a table with a repeating header row
and alternating row shading, and a footer with generation time and record
count on every page.
"""

import io
from datetime import datetime
from typing import Any, List, Mapping, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .base import TabularEncoder, resolve_columns, cell_text
from ..models.job import ExportFormat


NO_DATA_TEXT = "No data available"

PAGE_MARGIN = 30
HEADER_BACKGROUND = colors.HexColor("#1E88E5")
ALTERNATE_BACKGROUND = colors.HexColor("#EEEEEE")


class PdfEncoder(TabularEncoder):
    """Tabular PDF report."""

    format = ExportFormat.PDF
    content_type = "application/pdf"

    def __init__(self, page_size=landscape(A4)):
        self.page_size = page_size
        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            "ExportTitle", parent=styles["Title"], fontSize=20, textColor=HEADER_BACKGROUND
        )
        self.header_style = ParagraphStyle(
            "ExportHeader", parent=styles["Normal"], fontName="Helvetica-Bold",
            fontSize=9, textColor=colors.white
        )
        self.cell_style = ParagraphStyle("ExportCell", parent=styles["Normal"], fontSize=8, leading=10)
        self.empty_style = ParagraphStyle("ExportEmpty", parent=styles["Normal"], fontSize=12)

    def encode(self, rows: Sequence[Mapping[str, Any]], title: str = "Export") -> bytes:
        buffer = io.BytesIO()
        document = SimpleDocTemplate(
            buffer,
            pagesize=self.page_size,
            leftMargin=PAGE_MARGIN,
            rightMargin=PAGE_MARGIN,
            topMargin=PAGE_MARGIN,
            bottomMargin=PAGE_MARGIN,
            title=f"{title} Export Report",
        )

        footer = f"Generated on: {datetime.now():%Y-%m-%d %H:%M:%S} | Total Records: {len(rows)}"

        def draw_footer(canvas, doc):
            canvas.saveState()
            canvas.setFont("Helvetica", 9)
            canvas.drawCentredString(self.page_size[0] / 2, PAGE_MARGIN / 2, footer)
            canvas.restoreState()

        story = [
            Paragraph(escape(f"{title} Export Report"), self.title_style),
            Spacer(1, 10),
            self._build_table(rows, document.width),
        ]
        document.build(story, onFirstPage=draw_footer, onLaterPages=draw_footer)
        return buffer.getvalue()

    def _build_table(self, rows: Sequence[Mapping[str, Any]], available_width: float) -> Table:
        columns = resolve_columns(rows)
        if not columns:
            return Table([[Paragraph(NO_DATA_TEXT, self.empty_style)]], colWidths=[min(500, available_width)])

        data: List[List[Paragraph]] = [[Paragraph(escape(column), self.header_style) for column in columns]]
        for row in rows:
            data.append([Paragraph(escape(cell_text(row.get(column))), self.cell_style) for column in columns])

        table = Table(data, colWidths=[available_width / len(columns)] * len(columns), repeatRows=1)
        style = [
            ("BACKGROUND", (0, 0), (-1, 0), HEADER_BACKGROUND),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ]
        for index in range(1, len(data)):
            if index % 2 == 1:
                style.append(("BACKGROUND", (0, index), (-1, index), ALTERNATE_BACKGROUND))
        table.setStyle(TableStyle(style))
        return table
