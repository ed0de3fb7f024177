from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas as pdf_canvas

from waiverpdf.config import Settings, get_settings
from waiverpdf.pdf.assets import load_image_bytes, load_logo, open_image
from waiverpdf.pdf.fonts import FontSet, resolve_fonts, safe_canvas_font
from waiverpdf.pdf.formatting import (
    add_years,
    document_version,
    format_date,
    format_effective_date,
    format_timestamp,
    resolve_zone,
)
from waiverpdf.pdf.layout import LayoutCursor, PageGeometry
from waiverpdf.pdf.measure import (
    FONT_BOLD,
    FONT_ITALIC,
    FONT_REGULAR,
    ReportlabTextMeasurer,
    TextMeasurer,
    wrap_text,
)
from waiverpdf.templates.blocks import split_template
from waiverpdf.templates.defaults import MEDIA_RELEASE_TITLE, intro_prefix_for, media_release_sentence
from waiverpdf.templates.interpolation import build_interpolation_params, interpolate
from waiverpdf.types import SignatureCapture, WaiverSubmission, WaiverTemplate


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4

PAGE_MARGIN = 16 * mm
LINE_HEIGHT = 5.2 * mm
BULLET_INDENT = 6 * mm
BULLET_GLYPH_INSET = 2 * mm
BULLET_TRAILING_GAP = 1 * mm

BODY_FONT_SIZE = 9.0
HEADING_FONT_SIZE = 10.5

LOGO_SIZE = 12 * mm
LOGO_OFFSET_Y = 2 * mm
HEADER_COLUMN_GAP = 6 * mm
HEADER_BOTTOM_GAP = 6 * mm
ORG_NAME_FONT_SIZE = 14.0
ORG_NAME_BASELINE = 5 * mm
ORG_NAME_LINE_STEP = 6 * mm
TITLE_FONT_SIZE = 12.0
TITLE_BASELINE_GAP = 8 * mm
TITLE_LINE_STEP = 5 * mm
TITLE_MIN_WIDTH = 50 * mm

INFO_FONT_SIZE = 9.0
INFO_MIN_VALUE_FONT_SIZE = 6.0
INFO_FONT_STEP = 0.5
INFO_MIN_WIDTH = 60 * mm
INFO_MAX_WIDTH_RATIO = 0.45
INFO_PAD_LEFT = 2 * mm
INFO_PAD_RIGHT = 2 * mm
INFO_LABEL_GAP = 4 * mm
INFO_LINE_STEP = 4.2 * mm
INFO_ROW_GAP = 1.2 * mm
INFO_PAD_TOP = 4 * mm
INFO_PAD_BOTTOM = 3 * mm

SIGNATURE_HEADING_STEP = 6 * mm
SIGNATURE_COLUMN_GAP = 8 * mm
SIGNATURE_LABEL_STEP = 4.2 * mm
SIGNATURE_IMAGE_OFFSET = 4 * mm
SIGNATURE_IMAGE_HEIGHT = 16 * mm
SIGNATURE_TIMESTAMP_OFFSET = 4 * mm
SIGNATURE_TIMESTAMP_FONT_SIZE = 7.5
SIGNATURE_TIMESTAMP_VALUE_X = 20 * mm
SIGNATURE_TRAILING_GAP = 6 * mm
SIGNATURE_PLACEHOLDER = '[Signature]'

FOOTER_FONT_SIZE = 8.0
FOOTER_BASELINE_FROM_BOTTOM = 10 * mm
FOOTER_COLOR = colors.Color(100 / 255, 100 / 255, 100 / 255)

ELLIPSIS = '...'


@dataclass(frozen=True)
class BlockPlacement:
    kind: str
    page_index: int
    top: float
    bottom: float


@dataclass(frozen=True)
class ComposedWaiver:
    pdf_bytes: bytes
    page_count: int
    placements: tuple[BlockPlacement, ...]

    def placements_of(self, kind: str) -> list[BlockPlacement]:
        return [item for item in self.placements if item.kind == kind]


@dataclass(frozen=True)
class InfoRow:
    label: str
    lines: list[str]
    font_size: float

    @property
    def height(self) -> float:
        return max(1, len(self.lines)) * INFO_LINE_STEP


@dataclass(frozen=True)
class InfoBox:
    width: float
    value_x: float
    rows: list[InfoRow] = field(default_factory=list)

    @property
    def height(self) -> float:
        content = sum(row.height for row in self.rows) + max(0, len(self.rows) - 1) * INFO_ROW_GAP
        return INFO_PAD_TOP + content + INFO_PAD_BOTTOM


class _FooterCanvas(pdf_canvas.Canvas):
    """Canvas that holds finished pages back until the total page count is known."""

    def __init__(self, *args, draw_footer: Callable[[pdf_canvas.Canvas, int, int], None], **kwargs):
        super().__init__(*args, **kwargs)
        self._draw_footer = draw_footer
        self._saved_page_states: list[dict] = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for page_number, state in enumerate(self._saved_page_states, start=1):
            self.__dict__.update(state)
            self._draw_footer(self, page_number, total)
            super().showPage()
        super().save()


def draw_text(
    c: pdf_canvas.Canvas,
    text: str,
    x: float,
    y: float,
    *,
    font_name: str,
    font_size: float,
    fonts: FontSet,
    align: str = 'left',
) -> None:
    """Draw one line, switching to the CJK face for runs of CJK characters."""
    runs = fonts.reportlab_runs(text, font_name)
    if align != 'left':
        total = sum(pdfmetrics.stringWidth(segment, face, font_size) for segment, face in runs)
        x -= total if align == 'right' else total / 2
    for segment, face in runs:
        used = safe_canvas_font(c, face, font_size)
        c.drawString(x, y, segment)
        x += pdfmetrics.stringWidth(segment, used, font_size)


def fit_single_line(
    text: str,
    *,
    measurer: TextMeasurer,
    font_name: str,
    max_width: float,
    initial_size: float,
    min_size: float,
    step: float = INFO_FONT_STEP,
) -> float:
    size = initial_size
    while size > min_size and measurer.width(text, font_name, size) > max_width:
        size = max(min_size, size - step)
    return size


def truncate_to_width(
    text: str,
    *,
    measurer: TextMeasurer,
    font_name: str,
    font_size: float,
    max_width: float,
) -> str:
    if measurer.width(text, font_name, font_size) <= max_width:
        return text
    kept = text
    while kept and measurer.width(kept + ELLIPSIS, font_name, font_size) > max_width:
        kept = kept[:-1]
    return kept + ELLIPSIS


def layout_info_box(
    fields: list[tuple[str, str]],
    *,
    measurer: TextMeasurer,
    max_width: float,
) -> InfoBox:
    """Size the header info box from its content.

    The first field is the waiver ID: it stays on one line and shrinks down
    to the floor size, and is only truncated below that. The others wrap.
    """
    label_width = max((measurer.width(label, FONT_BOLD, INFO_FONT_SIZE) for label, _ in fields), default=0.0)
    value_x = INFO_PAD_LEFT + label_width + INFO_LABEL_GAP
    natural_value_width = max(
        (measurer.width(value, FONT_REGULAR, INFO_FONT_SIZE) for _, value in fields),
        default=0.0,
    )
    upper = max(INFO_MIN_WIDTH, max_width)
    width = min(max(INFO_MIN_WIDTH, value_x + natural_value_width + INFO_PAD_RIGHT), upper)
    value_width = max(1.0, width - value_x - INFO_PAD_RIGHT)

    rows: list[InfoRow] = []
    for index, (label, value) in enumerate(fields):
        if index == 0:
            size = fit_single_line(
                value,
                measurer=measurer,
                font_name=FONT_REGULAR,
                max_width=value_width,
                initial_size=INFO_FONT_SIZE,
                min_size=INFO_MIN_VALUE_FONT_SIZE,
            )
            fitted = truncate_to_width(
                value,
                measurer=measurer,
                font_name=FONT_REGULAR,
                font_size=size,
                max_width=value_width,
            )
            if fitted != value:
                logger.warning('Waiver id %r truncated to fit the header info box', value)
            rows.append(InfoRow(label=label, lines=[fitted], font_size=size))
            continue
        lines = wrap_text(
            value,
            measurer=measurer,
            max_width=value_width,
            font_name=FONT_REGULAR,
            font_size=INFO_FONT_SIZE,
        )
        rows.append(InfoRow(label=label, lines=lines, font_size=INFO_FONT_SIZE))

    return InfoBox(width=width, value_x=value_x, rows=rows)


def signature_block_height(label_line_count: int) -> float:
    extra_label_lines = max(0, label_line_count - 1)
    return (
        SIGNATURE_HEADING_STEP
        + extra_label_lines * SIGNATURE_LABEL_STEP
        + SIGNATURE_IMAGE_OFFSET
        + SIGNATURE_IMAGE_HEIGHT
        + SIGNATURE_TIMESTAMP_OFFSET
        + BULLET_TRAILING_GAP
    )


class WaiverComposer:
    """Paints one waiver onto a fresh canvas; one instance per render."""

    def __init__(
        self,
        template: WaiverTemplate,
        submission: WaiverSubmission,
        *,
        settings: Settings,
        measurer: TextMeasurer,
        logo: ImageReader | None,
        fonts: FontSet,
    ):
        self.template = template
        self.submission = submission
        self.settings = settings
        self.measurer = measurer
        self.logo = logo
        self.fonts = fonts
        self.zone = resolve_zone(settings.render_timezone)
        self.geometry = PageGeometry(
            width=PAGE_WIDTH,
            height=PAGE_HEIGHT,
            margin_top=PAGE_MARGIN,
            margin_bottom=PAGE_MARGIN,
            margin_left=PAGE_MARGIN,
            margin_right=PAGE_MARGIN,
        )
        self.buffer = io.BytesIO()
        self.canvas = _FooterCanvas(
            self.buffer,
            pagesize=A4,
            invariant=1 if settings.pdf_invariant else 0,
            draw_footer=self._draw_footer,
        )
        self.cursor = LayoutCursor(self.geometry, start_page=self.canvas.showPage)
        self.placements: list[BlockPlacement] = []

        created = submission.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=self.zone)
        self.created_at: datetime = created.astimezone(self.zone)
        expires = submission.expires_at
        if expires is None:
            self.expires_at: datetime = add_years(self.created_at, settings.waiver_validity_years)
        else:
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=self.zone)
            self.expires_at = expires.astimezone(self.zone)
        self.params = build_interpolation_params(
            submission,
            now=self.created_at,
            validity_years=settings.waiver_validity_years,
        )

    # -- coordinates -------------------------------------------------------

    def _pdf_y(self, top: float) -> float:
        return self.geometry.height - top

    def _record(self, kind: str, top: float, bottom: float) -> None:
        self.placements.append(
            BlockPlacement(kind=kind, page_index=self.cursor.page_index, top=top, bottom=bottom)
        )

    def _text(self, text: str, x: float, top: float, *, font_name: str, font_size: float, align: str = 'left') -> None:
        draw_text(
            self.canvas,
            text,
            x,
            self._pdf_y(top),
            font_name=font_name,
            font_size=font_size,
            fonts=self.fonts,
            align=align,
        )

    def _wrap(self, text: str, *, width: float, font_name: str, font_size: float) -> list[str]:
        return wrap_text(
            text,
            measurer=self.measurer,
            max_width=width,
            font_name=font_name,
            font_size=font_size,
        )

    # -- document ----------------------------------------------------------

    def compose(self) -> ComposedWaiver:
        self._set_metadata()
        sections = split_template(self.template)

        self._draw_header()
        self._draw_introduction(interpolate(sections.introduction, self.params))
        self.cursor.advance(3 * mm)

        self.add_text(interpolate(sections.section_title, self.params), HEADING_FONT_SIZE, bold=True, kind='section_title')
        self.cursor.advance(2 * mm)
        for clause in sections.clauses:
            self.add_bullet(interpolate(clause, self.params))
        self.cursor.advance(3 * mm)

        self.add_text(MEDIA_RELEASE_TITLE, HEADING_FONT_SIZE, bold=True, kind='media_title')
        self.cursor.advance(2 * mm)
        self.add_text(interpolate(sections.media_description, self.params), BODY_FONT_SIZE, kind='media_description')
        self.cursor.advance(2 * mm)
        sentence = media_release_sentence(
            self.submission.media_release,
            representative=self.submission.is_representative,
        )
        self.add_text(interpolate(sentence, self.params), BODY_FONT_SIZE, kind='media_release')
        self.cursor.advance(3 * mm)

        if sections.acknowledgment and not self.submission.is_representative:
            self.add_text(interpolate(sections.acknowledgment, self.params), BODY_FONT_SIZE, kind='acknowledgment')
            self.cursor.advance(4 * mm)
        else:
            self.cursor.advance(2 * mm)

        self._draw_signatures()

        self.canvas.showPage()
        self.canvas.save()
        return ComposedWaiver(
            pdf_bytes=self.buffer.getvalue(),
            page_count=self.cursor.page_index + 1,
            placements=tuple(self.placements),
        )

    def _set_metadata(self) -> None:
        passenger = self.submission.passenger
        kind = 'Representative' if self.submission.is_representative else 'Passenger'
        self.canvas.setTitle(f'{kind} Waiver - {passenger.full_name}')
        self.canvas.setSubject(self.settings.pdf_subject)
        self.canvas.setAuthor(self.settings.organization_name)
        self.canvas.setKeywords(self.settings.pdf_keywords)
        self.canvas.setCreator(self.settings.app_name)

    # -- header ------------------------------------------------------------

    def _draw_header(self) -> None:
        c = self.canvas
        margin = self.geometry.margin_left
        header_top = self.cursor.y

        info = layout_info_box(
            [
                ('Waiver ID:', self.submission.waiver_id),
                ('Created:', format_date(self.created_at)),
                ('Expires:', format_date(self.expires_at)),
            ],
            measurer=self.measurer,
            max_width=self.geometry.content_width * INFO_MAX_WIDTH_RATIO,
        )
        info_x = self.geometry.width - self.geometry.margin_right - info.width

        title_left = margin
        logo_bottom = header_top
        if self.logo is not None:
            try:
                logo_top = header_top + LOGO_OFFSET_Y
                c.drawImage(
                    self.logo,
                    margin,
                    self._pdf_y(logo_top + LOGO_SIZE),
                    width=LOGO_SIZE,
                    height=LOGO_SIZE,
                    preserveAspectRatio=True,
                    mask='auto',
                )
                logo_bottom = logo_top + LOGO_SIZE
                title_left = margin + LOGO_SIZE + HEADER_COLUMN_GAP
            except Exception as exc:
                logger.warning('Failed to draw waiver logo: %s', exc)

        title_width = max(TITLE_MIN_WIDTH, info_x - HEADER_COLUMN_GAP - title_left)
        title_center = title_left + title_width / 2

        c.setFillColor(colors.black)
        org_lines = self._wrap(
            self.settings.organization_name,
            width=title_width,
            font_name=FONT_BOLD,
            font_size=ORG_NAME_FONT_SIZE,
        )
        baseline = header_top + ORG_NAME_BASELINE
        for index, line in enumerate(org_lines):
            self._text(
                line,
                title_center,
                baseline + index * ORG_NAME_LINE_STEP,
                font_name=FONT_BOLD,
                font_size=ORG_NAME_FONT_SIZE,
                align='center',
            )

        title_lines = self._wrap(
            interpolate(self.template.title, self.params),
            width=title_width,
            font_name=FONT_BOLD,
            font_size=TITLE_FONT_SIZE,
        )
        title_top = baseline + (len(org_lines) - 1) * ORG_NAME_LINE_STEP + TITLE_BASELINE_GAP
        for index, line in enumerate(title_lines):
            self._text(
                line,
                title_center,
                title_top + index * TITLE_LINE_STEP,
                font_name=FONT_BOLD,
                font_size=TITLE_FONT_SIZE,
                align='center',
            )
        title_bottom = title_top + (len(title_lines) - 1) * TITLE_LINE_STEP

        self._draw_info_box(info, x=info_x, top=header_top)
        info_bottom = header_top + info.height

        row_bottom = max(logo_bottom, title_bottom, info_bottom)
        self._record('header', header_top, row_bottom)
        self.cursor.advance(row_bottom + HEADER_BOTTOM_GAP - self.cursor.y)

        c.setStrokeColor(colors.Color(150 / 255, 150 / 255, 150 / 255))
        c.setLineWidth(0.5 * mm)
        rule_y = self._pdf_y(self.cursor.y)
        c.line(margin, rule_y, self.geometry.width - self.geometry.margin_right, rule_y)
        self.cursor.advance(6 * mm)

    def _draw_info_box(self, info: InfoBox, *, x: float, top: float) -> None:
        c = self.canvas
        line_y = top + INFO_PAD_TOP + INFO_LINE_STEP
        for row in info.rows:
            self._text(row.label, x + INFO_PAD_LEFT, line_y, font_name=FONT_BOLD, font_size=INFO_FONT_SIZE)
            for index, line in enumerate(row.lines):
                self._text(
                    line,
                    x + info.value_x,
                    line_y + index * INFO_LINE_STEP,
                    font_name=FONT_REGULAR,
                    font_size=row.font_size,
                )
            line_y += row.height + INFO_ROW_GAP

        c.setStrokeColor(colors.Color(200 / 255, 200 / 255, 200 / 255))
        c.setLineWidth(0.3 * mm)
        c.rect(x, self._pdf_y(top + info.height), info.width, info.height, stroke=1, fill=0)

    # -- body --------------------------------------------------------------

    def _draw_introduction(self, intro: str) -> None:
        prefix = interpolate(intro_prefix_for(self.template.waiver_type), self.params)
        if prefix and intro.startswith(prefix):
            self.add_text(prefix, BODY_FONT_SIZE, bold=True, kind='introduction')
            body = intro[len(prefix):].lstrip()
            if body:
                self.add_text(body, BODY_FONT_SIZE, kind='introduction')
            return
        self.add_text(intro, BODY_FONT_SIZE, kind='introduction')

    def add_text(
        self,
        text: str,
        font_size: float = BODY_FONT_SIZE,
        *,
        bold: bool = False,
        indent: float = 0.0,
        kind: str = 'paragraph',
    ) -> None:
        font_name = FONT_BOLD if bold else FONT_REGULAR
        lines = self._wrap(text, width=self.geometry.content_width - indent, font_name=font_name, font_size=font_size)
        x = self.geometry.margin_left + indent
        self._flow_lines(lines, x=x, font_name=font_name, font_size=font_size, kind=kind)

    def add_bullet(self, text: str) -> None:
        width = self.geometry.content_width - BULLET_INDENT
        lines = self._wrap(text, width=width, font_name=FONT_REGULAR, font_size=BODY_FONT_SIZE)
        height = len(lines) * LINE_HEIGHT + BULLET_TRAILING_GAP
        # Keep the whole bullet together; a bullet taller than a page at least keeps its first line
        self.cursor.check_page_break(height if height <= self._page_capacity() else LINE_HEIGHT)

        self.canvas.setFillColor(colors.black)
        self._text(
            '•',
            self.geometry.margin_left + BULLET_GLYPH_INSET,
            self.cursor.y,
            font_name=FONT_REGULAR,
            font_size=BODY_FONT_SIZE,
        )
        self._flow_lines(
            lines,
            x=self.geometry.margin_left + BULLET_INDENT,
            font_name=FONT_REGULAR,
            font_size=BODY_FONT_SIZE,
            kind='clause',
        )
        self.cursor.advance(BULLET_TRAILING_GAP)

    def _page_capacity(self) -> float:
        return self.geometry.bottom_limit - self.geometry.margin_top

    def _flow_lines(self, lines: list[str], *, x: float, font_name: str, font_size: float, kind: str) -> None:
        height = len(lines) * LINE_HEIGHT
        c = self.canvas
        if height <= self._page_capacity():
            self.cursor.check_page_break(height)
            top = self.cursor.y
            c.setFillColor(colors.black)
            for index, line in enumerate(lines):
                self._text(line, x, top + index * LINE_HEIGHT, font_name=font_name, font_size=font_size)
            self.cursor.advance(height)
            self._record(kind, top, top + height)
            return

        # Taller than a page: break between lines
        for line in lines:
            self.cursor.check_page_break(LINE_HEIGHT)
            top = self.cursor.y
            c.setFillColor(colors.black)
            self._text(line, x, top, font_name=font_name, font_size=font_size)
            self.cursor.advance(LINE_HEIGHT)
            self._record(kind, top, top + LINE_HEIGHT)

    # -- signatures --------------------------------------------------------

    def _draw_signatures(self) -> None:
        c = self.canvas
        submission = self.submission
        column_width = (self.geometry.content_width - SIGNATURE_COLUMN_GAP) / 2
        left_x = self.geometry.margin_left
        right_x = left_x + column_width + SIGNATURE_COLUMN_GAP

        if submission.is_representative and submission.representative is not None:
            signer_label = f'Legal Representative ({submission.representative.full_name}):'
        else:
            signer_label = f'Passenger ({submission.passenger.full_name}):'
        witness_name = submission.signatures.witness.name.strip()
        witness_label = f'Witness ({witness_name}):' if witness_name else 'Witness:'

        label_columns = [
            self._wrap(label, width=column_width, font_name=FONT_BOLD, font_size=BODY_FONT_SIZE)
            for label in (signer_label, witness_label)
        ]
        label_line_count = max(len(lines) for lines in label_columns)
        height = signature_block_height(label_line_count)

        # Heading, labels, images and timestamps move to a new page together
        self.cursor.check_page_break(height)
        block_top = self.cursor.y

        c.setFillColor(colors.black)
        self._text('Signatures', left_x, block_top, font_name=FONT_BOLD, font_size=HEADING_FONT_SIZE - 0.5)
        label_top = block_top + SIGNATURE_HEADING_STEP

        for column_x, lines in zip((left_x, right_x), label_columns):
            for index, line in enumerate(lines):
                self._text(
                    line,
                    column_x,
                    label_top + index * SIGNATURE_LABEL_STEP,
                    font_name=FONT_BOLD,
                    font_size=BODY_FONT_SIZE,
                )

        image_top = label_top + (label_line_count - 1) * SIGNATURE_LABEL_STEP + SIGNATURE_IMAGE_OFFSET
        captures: list[SignatureCapture] = [submission.signatures.passenger, submission.signatures.witness]
        for column_x, capture in zip((left_x, right_x), captures):
            self._draw_signature_image(capture, x=column_x, top=image_top, column_width=column_width)

        timestamp_y = image_top + SIGNATURE_IMAGE_HEIGHT + SIGNATURE_TIMESTAMP_OFFSET
        for column_x, capture in zip((left_x, right_x), captures):
            self._draw_signed_on(capture, x=column_x, baseline=timestamp_y, column_width=column_width)

        self._record('signatures', block_top, block_top + height)
        self.cursor.advance(timestamp_y + SIGNATURE_TRAILING_GAP - block_top)

    def _draw_signature_image(self, capture: SignatureCapture, *, x: float, top: float, column_width: float) -> None:
        c = self.canvas
        reader = open_image(
            load_image_bytes(capture.image, timeout_seconds=self.settings.asset_timeout_seconds)
        )
        if reader is not None:
            try:
                c.drawImage(
                    reader,
                    x + 2 * mm,
                    self._pdf_y(top + SIGNATURE_IMAGE_HEIGHT),
                    width=column_width - 4 * mm,
                    height=SIGNATURE_IMAGE_HEIGHT,
                    preserveAspectRatio=True,
                    anchor='w',
                    mask='auto',
                )
                return
            except Exception as exc:
                logger.warning('Failed to draw signature image: %s', exc)

        c.setFillColor(colors.black)
        self._text(
            SIGNATURE_PLACEHOLDER,
            x + 15 * mm,
            top + SIGNATURE_IMAGE_HEIGHT / 2,
            font_name=FONT_ITALIC,
            font_size=BODY_FONT_SIZE,
        )

    def _draw_signed_on(self, capture: SignatureCapture, *, x: float, baseline: float, column_width: float) -> None:
        stamp = format_timestamp(capture.timestamp, zone_name=self.zone.key)
        self.canvas.setFillColor(colors.black)
        self._text('Signed on:', x, baseline, font_name=FONT_REGULAR, font_size=SIGNATURE_TIMESTAMP_FONT_SIZE)

        available = column_width - SIGNATURE_TIMESTAMP_VALUE_X
        size = fit_single_line(
            stamp,
            measurer=self.measurer,
            font_name=FONT_BOLD,
            max_width=available,
            initial_size=SIGNATURE_TIMESTAMP_FONT_SIZE,
            min_size=INFO_MIN_VALUE_FONT_SIZE,
        )
        self._text(stamp, x + SIGNATURE_TIMESTAMP_VALUE_X, baseline, font_name=FONT_BOLD, font_size=size)

    # -- footer ------------------------------------------------------------

    def _draw_footer(self, c: pdf_canvas.Canvas, page_number: int, page_count: int) -> None:
        c.saveState()
        c.setFillColor(FOOTER_COLOR)
        footer_y = FOOTER_BASELINE_FROM_BOTTOM
        entries = (
            (document_version(self.settings.organization_short_name, self.template.version), self.geometry.margin_left, 'left'),
            (format_effective_date(self.template.effective_date), self.geometry.width / 2, 'center'),
            (f'Page {page_number} of {page_count}', self.geometry.width - self.geometry.margin_right, 'right'),
        )
        for text, x, align in entries:
            draw_text(
                c,
                text,
                x,
                footer_y,
                font_name=FONT_REGULAR,
                font_size=FOOTER_FONT_SIZE,
                fonts=self.fonts,
                align=align,
            )
        c.restoreState()


_LOGO_FROM_SETTINGS = object()


def compose_waiver(
    template: WaiverTemplate,
    submission: WaiverSubmission,
    *,
    settings: Settings | None = None,
    measurer: TextMeasurer | None = None,
    logo: ImageReader | None | object = _LOGO_FROM_SETTINGS,
) -> ComposedWaiver:
    settings = settings or get_settings()
    if logo is _LOGO_FROM_SETTINGS:
        logo = load_logo(settings)
    fonts = resolve_fonts(settings)
    composer = WaiverComposer(
        template,
        submission,
        settings=settings,
        measurer=measurer or ReportlabTextMeasurer(fonts),
        logo=logo,
        fonts=fonts,
    )
    result = composer.compose()
    logger.info(
        'Composed waiver %s: %d page(s), %d bytes',
        submission.waiver_id,
        result.page_count,
        len(result.pdf_bytes),
    )
    return result


def compose_waiver_pdf(
    template: WaiverTemplate,
    submission: WaiverSubmission,
    **kwargs,
) -> bytes:
    return compose_waiver(template, submission, **kwargs).pdf_bytes


__all__ = [
    'BlockPlacement',
    'ComposedWaiver',
    'WaiverComposer',
    'compose_waiver',
    'compose_waiver_pdf',
    'fit_single_line',
    'layout_info_box',
    'signature_block_height',
    'truncate_to_width',
]
