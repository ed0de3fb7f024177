from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from .config import get_settings


_SAFE_NAME_PATTERN = re.compile(r'[^A-Za-z0-9._-]+')


def waivers_root() -> Path:
    root = get_settings().output_dir()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _safe_waiver_id(waiver_id: str) -> str:
    token = _SAFE_NAME_PATTERN.sub('_', str(waiver_id or '').strip()).strip('._')
    if not token:
        raise ValueError(f'invalid waiver_id: {waiver_id!r}')
    return token


def waiver_pdf_path(waiver_id: str, *, suffix: str = '') -> Path:
    return waivers_root() / f'{_safe_waiver_id(waiver_id)}{suffix}.pdf'


def waiver_exists(waiver_id: str) -> bool:
    return waiver_pdf_path(waiver_id).exists() or waiver_pdf_path(waiver_id, suffix='-paper').exists()


def write_bytes_atomic(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_bytes(content)
    tmp.replace(path)


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')
    tmp.replace(path)


def read_json(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding='utf-8'))
