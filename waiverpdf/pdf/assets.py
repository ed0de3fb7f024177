from __future__ import annotations

import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Iterable

import httpx
from reportlab.lib.utils import ImageReader

from waiverpdf.config import Settings


logger = logging.getLogger(__name__)

LOGO_CANDIDATES = (
    Path('assets/logo.png'),
    Path('assets/android-chrome-512x512.png'),
    Path('public/android-chrome-512x512.png'),
)


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def safe_file(path: Path | None) -> Path | None:
    if path is None:
        return None
    if path.exists() and path.is_file():
        return path
    return None


def _first_existing_relative_path(repo_root: Path, candidates: Iterable[Path]) -> Path | None:
    for relative in candidates:
        resolved = safe_file(repo_root / relative)
        if resolved is not None:
            return resolved
    return None


def _decode_data_url(source: str) -> bytes | None:
    header, _, payload = source.partition(',')
    if not payload:
        return None
    if ';base64' in header:
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError):
            return None
    return payload.encode('utf-8')


def load_image_bytes(source: str | None, *, timeout_seconds: float = 10.0) -> bytes | None:
    """Fetch raster bytes from a data URL, an http(s) URL or a file path.

    Returns ``None`` when the source is empty or cannot be read; callers keep
    laying out without the image.
    """
    token = str(source or '').strip()
    if not token:
        return None

    if token.startswith('data:'):
        data = _decode_data_url(token)
        if not data:
            logger.warning('Could not decode image data URL (%d chars)', len(token))
        return data or None

    if token.startswith(('http://', 'https://')):
        try:
            response = httpx.get(token, timeout=timeout_seconds, follow_redirects=True)
            response.raise_for_status()
            return response.content or None
        except httpx.HTTPError as exc:
            logger.warning('Failed to fetch image from %s: %s', token, exc)
            return None

    path = safe_file(Path(token).expanduser())
    if path is None:
        logger.warning('Image file not found: %s', token)
        return None
    try:
        return path.read_bytes()
    except OSError as exc:
        logger.warning('Failed to read image file %s: %s', path, exc)
        return None


def open_image(data: bytes | None) -> ImageReader | None:
    if not data:
        return None
    try:
        reader = ImageReader(io.BytesIO(data))
        reader.getSize()
        return reader
    except Exception as exc:
        logger.warning('Unsupported image data (%d bytes): %s', len(data), exc)
        return None


def load_logo(settings: Settings) -> ImageReader | None:
    if settings.logo_url:
        reader = open_image(load_image_bytes(settings.logo_url, timeout_seconds=settings.asset_timeout_seconds))
        if reader is not None:
            return reader

    logo_path = safe_file(settings.logo_path) if settings.logo_path else None
    if logo_path is None:
        logo_path = _first_existing_relative_path(_repo_root(), LOGO_CANDIDATES)
    if logo_path is None:
        return None
    try:
        return open_image(logo_path.read_bytes())
    except OSError as exc:
        logger.warning('Failed to read logo %s: %s', logo_path, exc)
        return None
