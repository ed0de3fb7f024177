from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFont

from waiverpdf.config import Settings
from waiverpdf.pdf.assets import safe_file


logger = logging.getLogger(__name__)

# Logical faces used by the layout code; also the base-14 fallbacks
FONT_REGULAR = 'Helvetica'
FONT_BOLD = 'Helvetica-Bold'
FONT_ITALIC = 'Helvetica-Oblique'

FONT_CJK_FALLBACK_NAME = 'STSong-Light'
FITZ_CJK_FALLBACK_NAME = 'china-s'

UNICODE_FONT_CANDIDATES: dict[str, tuple[Path, ...]] = {
    FONT_REGULAR: (
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'),
        Path('/usr/share/fonts/TTF/DejaVuSans.ttf'),
        Path('/usr/share/fonts/dejavu/DejaVuSans.ttf'),
        Path('/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf'),
        Path('/Library/Fonts/Arial Unicode.ttf'),
        Path('C:/Windows/Fonts/arial.ttf'),
    ),
    FONT_BOLD: (
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf'),
        Path('/usr/share/fonts/TTF/DejaVuSans-Bold.ttf'),
        Path('/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf'),
        Path('/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf'),
        Path('C:/Windows/Fonts/arialbd.ttf'),
    ),
    FONT_ITALIC: (
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf'),
        Path('/usr/share/fonts/TTF/DejaVuSans-Oblique.ttf'),
        Path('/usr/share/fonts/dejavu/DejaVuSans-Oblique.ttf'),
        Path('/usr/share/fonts/truetype/liberation/LiberationSans-Italic.ttf'),
        Path('C:/Windows/Fonts/ariali.ttf'),
    ),
}

# Resource names for fonts inserted into PyMuPDF pages
_FITZ_FACE_NAMES = {
    FONT_REGULAR: 'WvSans',
    FONT_BOLD: 'WvSansBold',
    FONT_ITALIC: 'WvSansItalic',
}
_FITZ_CJK_FILE_NAME = 'WvCJK'

# Base-14 names as PyMuPDF spells them
_FITZ_BASE14_ALIASES: dict[str, str] = {
    FONT_REGULAR: 'helv',
    FONT_BOLD: 'hebo',
    FONT_ITALIC: 'heit',
    'Helvetica-BoldOblique': 'hebi',
    'Times-Roman': 'tiro',
    'Courier': 'cour',
}


def fitz_font_name(font_name: str) -> str:
    return _FITZ_BASE14_ALIASES.get(font_name, font_name)


def is_cjk(char: str) -> bool:
    code = ord(char)
    return (
        0x4E00 <= code <= 0x9FFF  # CJK Unified Ideographs
        or 0x3400 <= code <= 0x4DBF  # CJK Extension A
        or 0xF900 <= code <= 0xFAFF  # CJK Compatibility Ideographs
        or 0x3000 <= code <= 0x30FF  # CJK punctuation, kana
        or 0xFF00 <= code <= 0xFFEF  # full-width forms
    )


def contains_cjk(value: str) -> bool:
    return any(is_cjk(char) for char in str(value or ''))


def split_cjk_runs(text: str) -> list[tuple[str, bool]]:
    """Split ``text`` into maximal runs that are either all CJK or all non-CJK."""
    runs: list[tuple[str, bool]] = []
    for char in text:
        flag = is_cjk(char)
        if runs and runs[-1][1] == flag:
            runs[-1] = (runs[-1][0] + char, flag)
        else:
            runs.append((char, flag))
    return runs


@dataclass(frozen=True)
class FitzRun:
    text: str
    font_name: str
    font_file: str | None = None


@dataclass(frozen=True)
class FontSet:
    """Registered fonts behind each logical face.

    ``faces`` maps a logical face to the reportlab font name registered for
    it and ``files`` to the TrueType file PyMuPDF embeds for it. An empty
    set draws everything in base-14 Helvetica.
    """

    faces: dict[str, str] = field(default_factory=dict)
    files: dict[str, str] = field(default_factory=dict)
    cjk: str | None = None
    cjk_file: str | None = None

    @property
    def unicode(self) -> bool:
        return FONT_REGULAR in self.faces

    def face(self, font_name: str) -> str:
        return self.faces.get(font_name, font_name)

    def reportlab_runs(self, text: str, font_name: str) -> list[tuple[str, str]]:
        face = self.face(font_name)
        if not self.cjk or not contains_cjk(text):
            return [(text, face)]
        return [(segment, self.cjk if flag else face) for segment, flag in split_cjk_runs(text)]

    def fitz_runs(self, text: str, font_name: str) -> list[FitzRun]:
        if font_name in self.files:
            base = FitzRun(text='', font_name=_FITZ_FACE_NAMES.get(font_name, 'WvSans'), font_file=self.files[font_name])
        else:
            base = FitzRun(text='', font_name=fitz_font_name(font_name))
        if not self.cjk or not contains_cjk(text):
            return [FitzRun(text=text, font_name=base.font_name, font_file=base.font_file)]

        if self.cjk_file:
            cjk = FitzRun(text='', font_name=_FITZ_CJK_FILE_NAME, font_file=self.cjk_file)
        else:
            cjk = FitzRun(text='', font_name=FITZ_CJK_FALLBACK_NAME)
        runs: list[FitzRun] = []
        for segment, flag in split_cjk_runs(text):
            spec = cjk if flag else base
            runs.append(FitzRun(text=segment, font_name=spec.font_name, font_file=spec.font_file))
        return runs


BASE14_FONTS = FontSet()


def register_ttf_font(font_name: str, font_path: Path, *, quiet: bool = False) -> bool:
    if font_name in pdfmetrics.getRegisteredFontNames():
        return True

    try:
        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
        return True
    except Exception as exc:
        if quiet:
            logger.info('Skipped PDF font %s from %s: %s', font_name, font_path, exc)
        else:
            logger.warning('Failed to register PDF font %s from %s: %s', font_name, font_path, exc)
        return False


def _register_first(configured: Path | None, candidates: tuple[Path, ...]) -> tuple[str, str] | None:
    if configured is not None:
        path = safe_file(Path(configured).expanduser())
        if path is None:
            logger.warning('Configured font file not found: %s', configured)
        elif register_ttf_font(f'Waiver-{path.stem}', path):
            return f'Waiver-{path.stem}', str(path)
    for candidate in candidates:
        path = safe_file(candidate)
        if path is None:
            continue
        if register_ttf_font(f'Waiver-{path.stem}', path, quiet=True):
            return f'Waiver-{path.stem}', str(path)
    return None


def _resolve_cjk(cjk_path: Path | None) -> tuple[str | None, str | None]:
    if cjk_path is not None:
        registered = _register_first(cjk_path, ())
        if registered is not None:
            return registered
    if FONT_CJK_FALLBACK_NAME not in pdfmetrics.getRegisteredFontNames():
        try:
            pdfmetrics.registerFont(UnicodeCIDFont(FONT_CJK_FALLBACK_NAME))
        except Exception as exc:
            logger.warning('Failed to register fallback CJK PDF font %s: %s', FONT_CJK_FALLBACK_NAME, exc)
            return None, None
    return FONT_CJK_FALLBACK_NAME, None


@lru_cache(maxsize=8)
def _resolve_fonts(
    regular_path: Path | None,
    bold_path: Path | None,
    italic_path: Path | None,
    cjk_path: Path | None,
) -> FontSet:
    faces: dict[str, str] = {}
    files: dict[str, str] = {}
    for face, configured in ((FONT_REGULAR, regular_path), (FONT_BOLD, bold_path), (FONT_ITALIC, italic_path)):
        registered = _register_first(configured, UNICODE_FONT_CANDIDATES[face])
        if registered is not None:
            faces[face], files[face] = registered

    if FONT_REGULAR not in faces:
        logger.warning('No Unicode TrueType font available; names outside Latin-1 will not render')
        faces.clear()
        files.clear()
    else:
        # Missing bold or italic files borrow the regular face so coverage stays the same
        for face in (FONT_BOLD, FONT_ITALIC):
            faces.setdefault(face, faces[FONT_REGULAR])
            files.setdefault(face, files[FONT_REGULAR])

    cjk, cjk_file = _resolve_cjk(cjk_path)
    return FontSet(faces=faces, files=files, cjk=cjk, cjk_file=cjk_file)


def resolve_fonts(settings: Settings) -> FontSet:
    """Fonts for one render: configured files first, then well-known system fonts."""
    if not settings.unicode_fonts:
        return BASE14_FONTS
    return _resolve_fonts(
        settings.font_path,
        settings.font_bold_path,
        settings.font_italic_path,
        settings.cjk_font_path,
    )


def safe_canvas_font(canvas, font_name: str, size: float) -> str:
    for candidate in (str(font_name or '').strip(), FONT_REGULAR):
        if not candidate:
            continue
        try:
            canvas.setFont(candidate, size)
            return candidate
        except Exception:
            continue
    return FONT_REGULAR


__all__ = [
    'BASE14_FONTS',
    'FONT_BOLD',
    'FONT_ITALIC',
    'FONT_REGULAR',
    'FitzRun',
    'FontSet',
    'contains_cjk',
    'fitz_font_name',
    'register_ttf_font',
    'resolve_fonts',
    'safe_canvas_font',
    'split_cjk_runs',
]
