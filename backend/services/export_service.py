"""
Export Service - CSV and PDF renderings of filtered search results.

Both formats take serialized rows from search_service.export_rows(), so
exports apply exactly the same filter semantics as the search endpoint.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter, landscape
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

# (row key, CSV header)
CSV_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ('address', 'Address'),
    ('city', 'City'),
    ('state', 'State'),
    ('zip_code', 'Zip Code'),
    ('property_type', 'Property Type'),
    ('bedrooms', 'Bedrooms'),
    ('bathrooms', 'Bathrooms'),
    ('square_feet', 'Square Feet'),
    ('list_price', 'List Price'),
    ('estimated_rent', 'Est. Monthly Rent'),
    ('price_to_rent_ratio', 'Price-to-Rent Ratio %'),
    ('cap_rate', 'Cap Rate %'),
    ('gross_rent_multiplier', 'Gross Rent Multiplier'),
    ('ratio_vs_market_percent', 'vs Market %'),
    ('is_exceptional_deal', 'Exceptional Deal'),
    ('data_source', 'Data Source'),
    ('last_updated', 'Last Updated'),
)

# Leading characters a spreadsheet treats as the start of a formula
FORMULA_PREFIXES = ('=', '+', '-', '@', '\t', '\r')

# (row key, header, column width in points, formatter name)
PDF_COLUMNS = (
    ('address', 'Address', 190, 'text'),
    ('city', 'City', 90, 'text'),
    ('state', 'St', 24, 'text'),
    ('zip_code', 'Zip', 44, 'text'),
    ('bedrooms', 'Bd', 24, 'int'),
    ('bathrooms', 'Ba', 28, 'number'),
    ('list_price', 'Price', 72, 'currency'),
    ('estimated_rent', 'Rent', 56, 'currency'),
    ('price_to_rent_ratio', 'Ratio %', 48, 'percent'),
    ('cap_rate', 'Cap %', 44, 'percent'),
    ('ratio_vs_market_percent', 'vs Mkt %', 52, 'percent'),
)

HEADER_COLOR = colors.HexColor("#0A2342")
DEAL_COLOR = colors.HexColor("#1B7F3B")


def export_filename(extension: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime('%Y%m%d-%H%M%S')
    return f"roiscout-properties-{stamp}.{extension}"


def _csv_value(value: Any) -> Any:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'yes' if value else 'no'
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def render_csv(rows: Sequence[Dict[str, Any]]) -> str:
    """CSV with a fixed header row; quoting handled by the csv module."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow([header for _, header in CSV_COLUMNS])
    for row in rows:
        writer.writerow([_csv_value(row.get(key)) for key, _ in CSV_COLUMNS])
    return buffer.getvalue()


class PDFExporter:
    """Tabular PDF of exported listings (landscape letter, repeating header)."""

    row_height = 14
    margin = 0.5 * inch

    def render(self, rows: Sequence[Dict[str, Any]], filters: Dict[str, Any]) -> bytes:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=landscape(letter))
        c.setTitle("ROIscout Property Export")
        width, height = landscape(letter)

        y = self._draw_title(c, filters, len(rows), width, height)
        y = self._draw_table_header(c, y)
        for idx, row in enumerate(rows):
            if y < self.margin + self.row_height:
                self._draw_footer(c, width)
                c.showPage()
                y = self._draw_table_header(c, height - self.margin)
            self._draw_row(c, row, idx, y, width)
            y -= self.row_height

        if not rows:
            c.setFont("Helvetica-Oblique", 10)
            c.drawString(self.margin, y - 4, "No properties matched the selected filters.")

        self._draw_footer(c, width)
        c.showPage()
        c.save()
        buffer.seek(0)
        return buffer.read()

    def _draw_title(self, c: canvas.Canvas, filters: Dict[str, Any], count: int,
                    width: float, height: float) -> float:
        top = height - self.margin
        c.setFillColor(HEADER_COLOR)
        c.setFont("Helvetica-Bold", 16)
        c.drawString(self.margin, top - 16, "ROIscout Property Export")
        c.setFont("Helvetica", 9)
        c.setFillColor(colors.black)
        generated = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')
        c.drawString(self.margin, top - 32, f"{count} properties · generated {generated}")
        y = top - 46
        for line in self._wrap(self._describe_filters(filters), width - 2 * self.margin, c):
            c.drawString(self.margin, y, line)
            y -= 11
        return y - 8

    def _draw_table_header(self, c: canvas.Canvas, y: float) -> float:
        c.setFont("Helvetica-Bold", 8)
        c.setFillColor(HEADER_COLOR)
        x = self.margin
        for _, header, col_width, _ in PDF_COLUMNS:
            c.drawString(x + 2, y, header)
            x += col_width
        c.setStrokeColor(HEADER_COLOR)
        c.line(self.margin, y - 3, x, y - 3)
        return y - self.row_height

    def _draw_row(self, c: canvas.Canvas, row: Dict[str, Any], idx: int, y: float, width: float) -> None:
        if idx % 2 == 0:
            c.setFillColor(colors.whitesmoke)
            total = sum(col[2] for col in PDF_COLUMNS)
            c.rect(self.margin, y - 3, total, self.row_height, fill=1, stroke=0)
        c.setFont("Helvetica", 8)
        c.setFillColor(DEAL_COLOR if row.get('is_exceptional_deal') else colors.black)
        x = self.margin
        for key, _, col_width, kind in PDF_COLUMNS:
            text = self._format(row.get(key), kind)
            c.drawString(x + 2, y, self._clip(text, col_width - 4, c))
            x += col_width

    def _draw_footer(self, c: canvas.Canvas, width: float) -> None:
        c.setFont("Helvetica-Oblique", 7)
        c.setFillColor(colors.grey)
        c.drawString(self.margin, self.margin / 2,
                     "Ratios use estimated rents. Informational only; not financial advice.")
        c.drawRightString(width - self.margin, self.margin / 2, f"Page {c.getPageNumber()}")

    @staticmethod
    def _describe_filters(filters: Dict[str, Any]) -> str:
        if not filters:
            return "Filters: none"
        parts = []
        for key, value in filters.items():
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            parts.append(f"{key}={value}")
        return "Filters: " + "; ".join(parts)

    @staticmethod
    def _format(value: Any, kind: str) -> str:
        if value is None:
            return "-"
        if kind == 'currency':
            return f"${value:,.0f}"
        if kind == 'percent':
            return f"{value:.2f}"
        if kind == 'number':
            return f"{value:g}"
        if kind == 'int':
            return str(int(value))
        return str(value)

    @staticmethod
    def _clip(text: str, max_width: float, c: canvas.Canvas) -> str:
        if c.stringWidth(text, "Helvetica", 8) <= max_width:
            return text
        while text and c.stringWidth(text + "…", "Helvetica", 8) > max_width:
            text = text[:-1]
        return text + "…"

    @staticmethod
    def _wrap(text: str, max_width: float, c: canvas.Canvas) -> List[str]:
        words = text.split()
        lines: List[str] = []
        current = ""
        for word in words:
            candidate = f"{current} {word}".strip()
            if c.stringWidth(candidate, "Helvetica", 9) <= max_width:
                current = candidate
            else:
                if current:
                    lines.append(current)
                current = word
        if current:
            lines.append(current)
        return lines


def render_pdf(rows: Sequence[Dict[str, Any]], filters: Dict[str, Any]) -> bytes:
    return PDFExporter().render(rows, filters)
