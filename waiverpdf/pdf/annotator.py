from __future__ import annotations

import logging
from dataclasses import dataclass

from waiverpdf.config import get_settings
from waiverpdf.pdf.fonts import BASE14_FONTS, FitzRun, FontSet, resolve_fonts
from waiverpdf.pdf.formatting import add_years, format_date
from waiverpdf.pdf.measure import (
    FONT_BOLD,
    FONT_REGULAR,
    FitzTextMeasurer,
    TextMeasurer,
    run_width,
    wrap_breakable,
    wrap_text,
)
from waiverpdf.types import OverlayMetadata


logger = logging.getLogger(__name__)

LABEL_FONT_SIZE = 7.0
VALUE_FONT_SIZE = 8.0
VALUE_MIN_FONT_SIZE = 6.0
FONT_STEP = 0.5
LINE_FACTOR = 1.2

PADDING_X = 6.0
PADDING_Y = 5.0
ROW_GAP = 4.0
COLUMN_GAP = 10.0
LABEL_GAP = 4.0
PAGE_MARGIN = 10.0
MIN_BOX_WIDTH = 150.0
# Keeps the box clear of the scanned form body; long e-mails wrap instead
MAX_BOX_WIDTH = 280.0

BOX_FILL = (1.0, 1.0, 1.0)
BOX_FILL_OPACITY = 0.95
BOX_BORDER = (0.7, 0.7, 0.7)
BOX_BORDER_WIDTH = 0.5
TEXT_COLOR = (0.1, 0.1, 0.1)

ELLIPSIS = '...'


class InvalidSourcePdfError(ValueError):
    """The uploaded document cannot be opened as a PDF with at least one page."""


@dataclass(frozen=True)
class OverlayText:
    text: str
    x: float
    baseline: float
    font_name: str
    font_size: float


@dataclass(frozen=True)
class OverlayCell:
    label: str
    lines: list[str]
    value_font_size: float
    x: float
    top: float
    width: float
    # Label sits beside the value instead of above it
    inline: bool = False
    label_width: float = 0.0

    @property
    def line_height(self) -> float:
        return self.value_font_size * LINE_FACTOR

    @property
    def height(self) -> float:
        values = len(self.lines) * self.line_height
        if self.inline:
            return max(LABEL_FONT_SIZE * LINE_FACTOR, values)
        return LABEL_FONT_SIZE * LINE_FACTOR + values


@dataclass(frozen=True)
class OverlayLayout:
    x0: float
    y0: float
    x1: float
    y1: float
    cells: tuple[OverlayCell, ...]

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    def cell(self, label: str) -> OverlayCell:
        for item in self.cells:
            if item.label == label:
                return item
        raise KeyError(label)

    def texts(self) -> list[OverlayText]:
        items: list[OverlayText] = []
        for cell in self.cells:
            items.append(
                OverlayText(
                    text=cell.label,
                    x=cell.x,
                    baseline=cell.top + LABEL_FONT_SIZE,
                    font_name=FONT_BOLD,
                    font_size=LABEL_FONT_SIZE,
                )
            )
            if cell.inline:
                value_x = cell.x + cell.label_width + LABEL_GAP
                value_top = cell.top
            else:
                value_x = cell.x
                value_top = cell.top + LABEL_FONT_SIZE * LINE_FACTOR
            for index, line in enumerate(cell.lines):
                items.append(
                    OverlayText(
                        text=line,
                        x=value_x,
                        baseline=value_top + index * cell.line_height + cell.value_font_size,
                        font_name=FONT_REGULAR,
                        font_size=cell.value_font_size,
                    )
                )
        return items


def _shrink_to_fit(text: str, *, measurer: TextMeasurer, max_width: float) -> float:
    size = VALUE_FONT_SIZE
    while size > VALUE_MIN_FONT_SIZE and measurer.width(text, FONT_REGULAR, size) > max_width:
        size = max(VALUE_MIN_FONT_SIZE, size - FONT_STEP)
    return size


def _fit_value(
    text: str,
    *,
    measurer: TextMeasurer,
    max_width: float,
    breakable: bool = False,
) -> tuple[list[str], float]:
    size = _shrink_to_fit(text, measurer=measurer, max_width=max_width)
    if measurer.width(text, FONT_REGULAR, size) <= max_width:
        return [text], size
    wrap = wrap_breakable if breakable else wrap_text
    lines = wrap(
        text,
        measurer=measurer,
        max_width=max_width,
        font_name=FONT_REGULAR,
        font_size=size,
    )
    return lines, size


def _fit_single_line(text: str, *, measurer: TextMeasurer, max_width: float) -> tuple[str, float]:
    size = _shrink_to_fit(text, measurer=measurer, max_width=max_width)
    if measurer.width(text, FONT_REGULAR, size) <= max_width:
        return text, size
    kept = text
    while kept and measurer.width(kept + ELLIPSIS, FONT_REGULAR, size) > max_width:
        kept = kept[:-1]
    logger.warning('Waiver id %r truncated to fit the overlay box', text)
    return kept + ELLIPSIS, size


def compute_overlay_layout(
    page_width: float,
    page_height: float,
    metadata: OverlayMetadata,
    *,
    measurer: TextMeasurer,
    validity_years: int = 1,
) -> OverlayLayout:
    """Size and place the metadata box for a page, in top-left page coordinates.

    Row 1 holds the waiver ID on a single line. Rows 2 and 3 are two columns
    (signed/expires, then uploaded/uploaded by) with each label above its
    value. Values shrink before they wrap, and only the ID is ever truncated.
    """

    def label_width(text: str) -> float:
        return measurer.width(text, FONT_BOLD, LABEL_FONT_SIZE)

    def value_width(text: str) -> float:
        return measurer.width(text, FONT_REGULAR, VALUE_FONT_SIZE)

    waiver_id = metadata.waiver_id
    signed = format_date(metadata.signed_date)
    expires = format_date(add_years(metadata.signed_date, validity_years))
    email = metadata.uploaded_by_email
    uploaded = format_date(metadata.upload_date) if metadata.upload_date else None

    id_label = 'Waiver ID:'
    id_label_width = label_width(id_label)
    id_row_width = id_label_width + LABEL_GAP + value_width(waiver_id)

    left_column = [('Signed:', signed)]
    right_column = [('Expires:', expires)]
    if uploaded is not None:
        left_column.append(('Uploaded:', uploaded))
        right_column.append(('Uploaded by:', email))

    def column_need(entries: list[tuple[str, str]]) -> float:
        return max(max(label_width(label), value_width(value)) for label, value in entries)

    left_need = column_need(left_column)
    right_need = column_need(right_column)
    content_width = max(id_row_width, left_need + COLUMN_GAP + right_need)
    if uploaded is None:
        content_width = max(content_width, label_width('Uploaded by:'), value_width(email))

    max_box_width = max(0.0, min(MAX_BOX_WIDTH, page_width - 2 * PAGE_MARGIN))
    box_width = min(max(MIN_BOX_WIDTH, content_width) + 2 * PADDING_X, max_box_width)
    inner_width = max(1.0, box_width - 2 * PADDING_X)

    # Anchor top-right, then clamp so the box never leaves the top or left margin
    x1 = page_width - PAGE_MARGIN
    x0 = max(PAGE_MARGIN, x1 - box_width)
    x1 = x0 + box_width
    y0 = PAGE_MARGIN
    inner_x = x0 + PADDING_X

    left_width = min(left_need, (inner_width - COLUMN_GAP) / 2)
    left_width = max(1.0, left_width)
    right_x = inner_x + left_width + COLUMN_GAP
    right_width = max(1.0, inner_width - left_width - COLUMN_GAP)

    cells: list[OverlayCell] = []
    top = y0 + PADDING_Y

    id_text, id_size = _fit_single_line(
        waiver_id,
        measurer=measurer,
        max_width=max(1.0, inner_width - id_label_width - LABEL_GAP),
    )
    id_cell = OverlayCell(
        label=id_label,
        lines=[id_text],
        value_font_size=id_size,
        x=inner_x,
        top=top,
        width=inner_width,
        inline=True,
        label_width=id_label_width,
    )
    cells.append(id_cell)
    top += id_cell.height + ROW_GAP

    rows: list[list[tuple[str, str, float, float, bool]]] = [
        [('Signed:', signed, inner_x, left_width, False), ('Expires:', expires, right_x, right_width, False)],
    ]
    if uploaded is not None:
        rows.append(
            [
                ('Uploaded:', uploaded, inner_x, left_width, False),
                ('Uploaded by:', email, right_x, right_width, True),
            ]
        )
    else:
        rows.append([('Uploaded by:', email, inner_x, inner_width, True)])

    for row in rows:
        row_cells: list[OverlayCell] = []
        for label, value, x, width, breakable in row:
            lines, size = _fit_value(value, measurer=measurer, max_width=width, breakable=breakable)
            row_cells.append(
                OverlayCell(label=label, lines=lines, value_font_size=size, x=x, top=top, width=width)
            )
        cells.extend(row_cells)
        top += max(cell.height for cell in row_cells) + ROW_GAP

    y1 = top - ROW_GAP + PADDING_Y
    if y1 > page_height - PAGE_MARGIN:
        logger.warning(
            'Overlay box (%.1fpt tall) does not fit a %.1fx%.1fpt page',
            y1 - y0,
            page_width,
            page_height,
        )

    return OverlayLayout(x0=x0, y0=y0, x1=x1, y1=y1, cells=tuple(cells))


def _open_source(pdf_bytes: bytes):
    import pymupdf as fitz

    if not pdf_bytes:
        raise InvalidSourcePdfError('Source PDF is empty')
    try:
        doc = fitz.open(stream=pdf_bytes, filetype='pdf')
    except Exception as exc:
        raise InvalidSourcePdfError(f'Source PDF could not be opened: {exc}') from exc

    if doc.is_encrypted and not doc.authenticate(''):
        doc.close()
        raise InvalidSourcePdfError('Source PDF is encrypted')
    if doc.page_count < 1:
        doc.close()
        raise InvalidSourcePdfError('Source PDF has no pages')
    return doc


def _ensure_page_font(page, run: FitzRun, inserted: dict[str, str]) -> str:
    """Insert the run's font file into the page once; degrade to Helvetica on failure."""
    if not run.font_file:
        return run.font_name
    if run.font_name not in inserted:
        try:
            page.insert_font(fontname=run.font_name, fontfile=run.font_file)
            inserted[run.font_name] = run.font_name
        except Exception as exc:
            logger.warning('Failed to embed overlay font %s from %s: %s', run.font_name, run.font_file, exc)
            inserted[run.font_name] = 'helv'
    return inserted[run.font_name]


def draw_overlay(page, layout: OverlayLayout, *, fonts: FontSet = BASE14_FONTS) -> None:
    import pymupdf as fitz

    page.draw_rect(
        fitz.Rect(layout.x0, layout.y0, layout.x1, layout.y1),
        color=BOX_BORDER,
        fill=BOX_FILL,
        width=BOX_BORDER_WIDTH,
        fill_opacity=BOX_FILL_OPACITY,
        overlay=True,
    )
    inserted: dict[str, str] = {}
    for item in layout.texts():
        x = item.x
        for run in fonts.fitz_runs(item.text, item.font_name):
            font_name = _ensure_page_font(page, run, inserted)
            page.insert_text(
                fitz.Point(x, item.baseline),
                run.text,
                fontsize=item.font_size,
                fontname=font_name,
                color=TEXT_COLOR,
                overlay=True,
            )
            if font_name == run.font_name:
                x += run_width(run, item.font_size)
            else:
                x += fitz.get_text_length(run.text, fontname=font_name, fontsize=item.font_size)


def annotate_paper_waiver(
    pdf_bytes: bytes,
    metadata: OverlayMetadata,
    *,
    measurer: TextMeasurer | None = None,
    validity_years: int = 1,
    fonts: FontSet | None = None,
) -> bytes:
    """Stamp the waiver metadata box onto the first page of a scanned waiver."""
    fonts = fonts or resolve_fonts(get_settings())
    measurer = measurer or FitzTextMeasurer(fonts)
    doc = _open_source(pdf_bytes)
    try:
        page = doc[0]
        if page.rotation:
            # Keep the box in the visible top-right corner of rotated scans
            page.remove_rotation()
        rect = page.rect
        layout = compute_overlay_layout(
            float(rect.width),
            float(rect.height),
            metadata,
            measurer=measurer,
            validity_years=validity_years,
        )
        draw_overlay(page, layout, fonts=fonts)
        page_count = doc.page_count
        output = doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()

    logger.info(
        'Annotated paper waiver %s (%d page(s), box %.1fx%.1fpt)',
        metadata.waiver_id,
        page_count,
        layout.width,
        layout.height,
    )
    return output
