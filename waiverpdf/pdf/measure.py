from __future__ import annotations

import logging
import re
from typing import Protocol

from reportlab.pdfbase import pdfmetrics

from waiverpdf.pdf.fonts import (
    BASE14_FONTS,
    FONT_BOLD,
    FONT_ITALIC,
    FONT_REGULAR,
    FitzRun,
    FontSet,
)


logger = logging.getLogger(__name__)

_BREAK_AFTER_PATTERN = re.compile(r'(?<=[\s@._\-])')

_FITZ_FONT_METRICS_CACHE: dict[str, object] = {}


class TextMeasurer(Protocol):
    def width(self, text: str, font_name: str, font_size: float) -> float:
        ...


class ReportlabTextMeasurer:
    """Metrics of the fonts registered with reportlab, run by run."""

    def __init__(self, fonts: FontSet | None = None):
        self.fonts = fonts or BASE14_FONTS

    def width(self, text: str, font_name: str, font_size: float) -> float:
        if not text:
            return 0.0
        size = max(0.1, float(font_size))
        return float(
            sum(pdfmetrics.stringWidth(segment, face, size) for segment, face in self.fonts.reportlab_runs(text, font_name))
        )


class FitzTextMeasurer:
    """Metrics PyMuPDF uses when it inserts text onto a page."""

    def __init__(self, fonts: FontSet | None = None):
        self.fonts = fonts or BASE14_FONTS

    def width(self, text: str, font_name: str, font_size: float) -> float:
        if not text:
            return 0.0
        size = max(0.1, float(font_size))
        return float(sum(run_width(run, size) for run in self.fonts.fitz_runs(text, font_name)))


def _fitz_font_file(path: str):
    cached = _FITZ_FONT_METRICS_CACHE.get(path)
    if cached is None:
        import pymupdf as fitz

        cached = fitz.Font(fontfile=path)
        _FITZ_FONT_METRICS_CACHE[path] = cached
    return cached


def run_width(run: FitzRun, font_size: float) -> float:
    if not run.text:
        return 0.0
    if run.font_file:
        return float(_fitz_font_file(run.font_file).text_length(run.text, fontsize=font_size))
    import pymupdf as fitz

    return float(fitz.get_text_length(run.text, fontname=run.font_name, fontsize=font_size))


def split_token_by_width(
    token: str,
    *,
    measurer: TextMeasurer,
    max_width: float,
    font_name: str,
    font_size: float,
) -> list[str]:
    if not token:
        return []

    chunks: list[str] = []
    current = ''
    for char in token:
        candidate = f'{current}{char}'
        if measurer.width(candidate, font_name, font_size) <= max_width:
            current = candidate
            continue
        if current:
            chunks.append(current)
            current = char
            continue
        # A single glyph wider than the column still gets its own line
        chunks.append(char)
        current = ''
    if current:
        chunks.append(current)
    return chunks


def _pack_pieces(
    pieces: list[str],
    *,
    measurer: TextMeasurer,
    max_width: float,
    font_name: str,
    font_size: float,
) -> list[str]:
    lines: list[str] = []
    current = ''
    for piece in pieces:
        candidate = f'{current}{piece}'
        if measurer.width(candidate.rstrip(), font_name, font_size) <= max_width:
            current = candidate
            continue
        if current.strip():
            lines.append(current.rstrip())
        stripped = piece.lstrip() if current else piece
        current = ''
        if measurer.width(stripped.rstrip(), font_name, font_size) <= max_width:
            current = stripped
            continue
        chunks = split_token_by_width(
            stripped,
            measurer=measurer,
            max_width=max_width,
            font_name=font_name,
            font_size=font_size,
        )
        lines.extend(chunk.rstrip() for chunk in chunks[:-1])
        current = chunks[-1] if chunks else ''
    if current.strip():
        lines.append(current.rstrip())
    return lines


def wrap_text(
    text: str,
    *,
    measurer: TextMeasurer,
    max_width: float,
    font_name: str,
    font_size: float,
) -> list[str]:
    """Greedy word wrap; explicit newlines are kept and overlong words are split by glyph."""
    wrapped: list[str] = []
    for paragraph in str(text or '').replace('\r\n', '\n').replace('\r', '\n').split('\n'):
        words = re.findall(r'\S+\s*', paragraph.strip())
        lines = _pack_pieces(
            words,
            measurer=measurer,
            max_width=max_width,
            font_name=font_name,
            font_size=font_size,
        )
        wrapped.extend(lines or [''])
    return wrapped or ['']


def wrap_breakable(
    text: str,
    *,
    measurer: TextMeasurer,
    max_width: float,
    font_name: str,
    font_size: float,
) -> list[str]:
    """Wrap text without spaces, e-mail addresses in particular, after ``@ . - _``."""
    pieces = [piece for piece in _BREAK_AFTER_PATTERN.split(str(text or '').strip()) if piece]
    lines = _pack_pieces(
        pieces,
        measurer=measurer,
        max_width=max_width,
        font_name=font_name,
        font_size=font_size,
    )
    return lines or ['']


__all__ = [
    'FONT_BOLD',
    'FONT_ITALIC',
    'FONT_REGULAR',
    'FitzTextMeasurer',
    'ReportlabTextMeasurer',
    'TextMeasurer',
    'run_width',
    'split_token_by_width',
    'wrap_breakable',
    'wrap_text',
]
