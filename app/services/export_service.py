"""
app/services/export_service.py

Read-only exports built from a snapshot of the loaded report.

    build_mismatch_csv            counted rows whose count differs from on hand
    render_missing_counts_pdf     two-column "Counts Needed" worksheet
    render_missing_counts_list_pdf  single-column "Items Missing Physical Count"
    build_assigned_sheet_html     printable sheet of the caller's SKUs

All functions are pure over their inputs; the same records always produce
the same output.
"""

from __future__ import annotations

import csv
import html
import io
import logging
import math
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date as date_type

from PIL import Image, ImageDraw, ImageFont

from app.config import ExportSettings, get_export_settings
from app.domain.inventory import EntryRecord

logger = logging.getLogger(__name__)

MISMATCH_HEADER = ["SKU", "On Hand", "Count", "Difference"]
BLANK_COUNT = "__________"

PAGE_WIDTH_INCHES = 8.5
PAGE_HEIGHT_INCHES = 11.0
MARGIN_TOP_MM = 25.0
MARGIN_SIDE_MM = 12.0
MARGIN_BOTTOM_MM = 20.0
ROW_HEIGHT_MM = 7.0

FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "DejaVuSans.ttf",
    "arial.ttf",
)


# ---------------------------------------------------------------------------
# File names
# ---------------------------------------------------------------------------


def _epoch_millis(now: float | None = None) -> int:
    return int((time.time() if now is None else now) * 1000)


def mismatch_filename(now: float | None = None) -> str:
    return f"Mismatch_Report_{_epoch_millis(now)}.csv"


def counts_needed_filename(now: float | None = None) -> str:
    return f"Counts_Needed_{_epoch_millis(now)}.pdf"


def missing_counts_filename(now: float | None = None) -> str:
    return f"Missing_Counts_{_epoch_millis(now)}.pdf"


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def mismatched_records(records: Iterable[EntryRecord]) -> list[EntryRecord]:
    """Counted rows whose count differs from on hand. A row without on hand always differs."""
    return [
        record
        for record in records
        if record.count is not None and record.count != record.on_hand
    ]


def missing_count_records(records: Iterable[EntryRecord]) -> list[EntryRecord]:
    return [record for record in records if record.count is None]


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def build_mismatch_csv(records: Sequence[EntryRecord], *, include_user: bool = True) -> str:
    """
    Render the mismatch report as CSV text in input order.

    Difference is ``count - on_hand``. An absent on hand is measured as 0 and
    written as an empty cell.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    header = list(MISMATCH_HEADER)
    if include_user:
        header.append("User")
    writer.writerow(header)

    for record in mismatched_records(records):
        on_hand = record.on_hand or 0
        row = [
            record.sku,
            "" if record.on_hand is None else record.on_hand,
            record.count,
            record.count - on_hand,
        ]
        if include_user:
            row.append(record.assigned_to)
        writer.writerow(row)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Missing-counts layout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MissingCountsLayout:
    """
    Two-column split of the uncounted SKUs, paginated.

    ``pages`` holds body rows only; each row is ``(left_sku, right_sku)``
    where ``right_sku`` is None past the end of the right half.
    """

    left: list[str]
    right: list[str]
    pages: list[list[tuple[str, str | None]]]

    @property
    def total_pages(self) -> int:
        return len(self.pages)


def layout_missing_counts(records: Iterable[EntryRecord], rows_per_page: int) -> MissingCountsLayout:
    """
    Split the uncounted SKUs in halves over the whole list, then paginate.

    The left column takes ``ceil(n / 2)`` SKUs. Always yields at least one
    (possibly empty) page.
    """

    if rows_per_page < 1:
        raise ValueError("rows_per_page must be at least 1")

    skus = [record.sku for record in missing_count_records(records)]
    half = math.ceil(len(skus) / 2)
    left, right = skus[:half], skus[half:]

    body: list[tuple[str, str | None]] = [
        (sku, right[index] if index < len(right) else None)
        for index, sku in enumerate(left)
    ]
    pages = [body[start : start + rows_per_page] for start in range(0, len(body), rows_per_page)]
    return MissingCountsLayout(left=left, right=right, pages=pages or [[]])


def _paginate_list(skus: list[str], rows_per_page: int) -> list[list[str]]:
    pages = [skus[start : start + rows_per_page] for start in range(0, len(skus), rows_per_page)]
    return pages or [[]]


# ---------------------------------------------------------------------------
# PDF rendering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _PageGeometry:
    dpi: int
    width: int
    height: int
    top: int
    side: int
    bottom: int
    row_height: int

    @classmethod
    def letter(cls, dpi: int) -> "_PageGeometry":
        def mm(value: float) -> int:
            return round(value / 25.4 * dpi)

        return cls(
            dpi=dpi,
            width=round(PAGE_WIDTH_INCHES * dpi),
            height=round(PAGE_HEIGHT_INCHES * dpi),
            top=mm(MARGIN_TOP_MM),
            side=mm(MARGIN_SIDE_MM),
            bottom=mm(MARGIN_BOTTOM_MM),
            row_height=max(1, mm(ROW_HEIGHT_MM)),
        )

    @property
    def body_rows_per_page(self) -> int:
        # One row of the grid is the column header.
        usable = self.height - self.top - self.bottom
        return max(1, usable // self.row_height - 1)


def _load_font(size: int, font_path: str | None) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    candidates = (font_path,) + FONT_CANDIDATES if font_path else FONT_CANDIDATES
    for candidate in candidates:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    logger.warning("No TrueType font found for PDF export; using Pillow's default font")
    return ImageFont.load_default(size=size)


def _format_date(value: date_type | None, settings: ExportSettings) -> str:
    return (value or date_type.today()).strftime(settings.date_format)


def _draw_centered(draw: ImageDraw.ImageDraw, box: tuple[int, int, int, int], text: str, font) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = box[0] + (box[2] - box[0] - (right - left)) // 2
    y = box[1] + (box[3] - box[1] - (bottom - top)) // 2 - top
    draw.text((x, y), text, fill=0, font=font)


def _draw_cell_text(draw: ImageDraw.ImageDraw, box: tuple[int, int, int, int], text: str, font, pad: int) -> None:
    _, top, _, bottom = draw.textbbox((0, 0), text, font=font)
    y = box[1] + (box[3] - box[1] - (bottom - top)) // 2 - top
    draw.text((box[0] + pad, y), text, fill=0, font=font)


def _draw_grid(
    draw: ImageDraw.ImageDraw,
    geometry: _PageGeometry,
    *,
    column_widths: Sequence[float],
    header: Sequence[str],
    rows: Sequence[Sequence[str]],
    font,
    header_font,
) -> None:
    table_width = geometry.width - 2 * geometry.side
    edges = [geometry.side]
    for fraction in column_widths:
        edges.append(edges[-1] + round(table_width * fraction))
    edges[-1] = geometry.width - geometry.side
    pad = max(2, geometry.row_height // 5)

    all_rows = [list(header), *[list(row) for row in rows]]
    for row_index, cells in enumerate(all_rows):
        y0 = geometry.top + row_index * geometry.row_height
        y1 = y0 + geometry.row_height
        if row_index == 0:
            draw.rectangle((edges[0], y0, edges[-1], y1), fill=230)
        for column, text in enumerate(cells):
            box = (edges[column], y0, edges[column + 1], y1)
            draw.rectangle(box, outline=0, width=1)
            if not text:
                continue
            if row_index == 0:
                _draw_centered(draw, box, text, header_font)
            else:
                _draw_cell_text(draw, box, text, font, pad)


def _render_pages(
    *,
    title: str,
    column_widths: Sequence[float],
    header: Sequence[str],
    pages: Sequence[Sequence[Sequence[str]]],
    settings: ExportSettings,
) -> bytes:
    geometry = _PageGeometry.letter(settings.dpi)
    font = _load_font(max(8, geometry.row_height * 11 // 20), settings.font_path)
    title_font = _load_font(max(10, geometry.row_height * 3 // 4), settings.font_path)

    images: list[Image.Image] = []
    total = len(pages)
    for number, rows in enumerate(pages, start=1):
        image = Image.new("L", (geometry.width, geometry.height), 255)
        draw = ImageDraw.Draw(image)
        _draw_centered(draw, (0, geometry.top // 3, geometry.width, geometry.top * 5 // 6), title, title_font)
        _draw_grid(
            draw,
            geometry,
            column_widths=column_widths,
            header=header,
            rows=rows,
            font=font,
            header_font=font,
        )
        footer_top = geometry.height - geometry.bottom
        _draw_centered(draw, (0, footer_top, geometry.width, footer_top + geometry.bottom // 2), f"Page {number} of {total}", font)
        images.append(image)

    buffer = io.BytesIO()
    images[0].save(
        buffer,
        format="PDF",
        save_all=True,
        append_images=images[1:],
        resolution=float(geometry.dpi),
    )
    return buffer.getvalue()


def render_missing_counts_pdf(
    records: Sequence[EntryRecord],
    *,
    user: str,
    date: date_type | None = None,
    settings: ExportSettings | None = None,
) -> bytes:
    """
    Render the two-column "Counts Needed" worksheet for uncounted rows.
    """

    settings = settings or get_export_settings()
    geometry = _PageGeometry.letter(settings.dpi)
    layout = layout_missing_counts(records, geometry.body_rows_per_page)
    pages = [[(left, "", right or "", "") for left, right in page] for page in layout.pages]
    return _render_pages(
        title=f"Counts Needed – {_format_date(date, settings)} – User: {user}",
        column_widths=(0.3, 0.2, 0.3, 0.2),
        header=("SKU", "Count", "SKU", "Count"),
        pages=pages,
        settings=settings,
    )


def render_missing_counts_list_pdf(
    records: Sequence[EntryRecord],
    *,
    user: str | None = None,
    date: date_type | None = None,
    settings: ExportSettings | None = None,
) -> bytes:
    """
    Render the single-column "Items Missing Physical Count" list.
    """

    settings = settings or get_export_settings()
    geometry = _PageGeometry.letter(settings.dpi)
    skus = [record.sku for record in missing_count_records(records)]
    pages = [[(sku, BLANK_COUNT) for sku in page] for page in _paginate_list(skus, geometry.body_rows_per_page)]
    title = "Items Missing Physical Count"
    if user:
        title = f"{title} – {_format_date(date, settings)} – User: {user}"
    return _render_pages(
        title=title,
        column_widths=(0.6, 0.4),
        header=("SKU", "Physical Count"),
        pages=pages,
        settings=settings,
    )


# ---------------------------------------------------------------------------
# Assigned sheet
# ---------------------------------------------------------------------------


def build_assigned_sheet_html(records: Iterable[EntryRecord], user: str) -> str:
    """
    Printable HTML sheet listing the SKUs assigned to ``user``.
    """

    safe_user = html.escape(user)
    body_rows = "\n".join(
        f"      <tr><td>{html.escape(record.sku)}</td><td>{BLANK_COUNT}</td></tr>"
        for record in records
        if record.assigned_to == user
    )
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        '  <meta charset="utf-8">\n'
        f"  <title>Assigned SKUs for {safe_user}</title>\n"
        "  <style>\n"
        "    body { font-family: sans-serif; margin: 12mm; }\n"
        "    table { border-collapse: collapse; width: 100%; }\n"
        "    th, td { border: 1px solid #000; padding: 4px 8px; text-align: left; }\n"
        "  </style>\n"
        "</head>\n"
        "<body>\n"
        f"  <h1>Assigned SKUs for {safe_user}</h1>\n"
        "  <table>\n"
        "    <thead><tr><th>SKU</th><th>Physical Count</th></tr></thead>\n"
        "    <tbody>\n"
        f"{body_rows}\n"
        "    </tbody>\n"
        "  </table>\n"
        "</body>\n"
        "</html>\n"
    )
