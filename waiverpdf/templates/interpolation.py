from __future__ import annotations

import re
from datetime import datetime
from typing import Mapping

from waiverpdf.pdf.formatting import add_years, format_date
from waiverpdf.types import TemplateBlock, WaiverSubmission


PLACEHOLDER_PATTERN = re.compile(r'\{\{\s*([A-Za-z0-9_]+)\s*\}\}')


def interpolate(text: str | None, values: Mapping[str, str | None] | None) -> str:
    """Replace every ``{{ name }}`` span with ``values[name]``.

    Unknown names and ``None`` values become the empty string. Substituted
    values are not scanned again, so a value containing ``{{...}}`` stays
    literal.
    """
    if not text:
        return ''
    lookup = values or {}

    def _replace(match: re.Match[str]) -> str:
        value = lookup.get(match.group(1))
        return '' if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def extract_placeholders(text: str | None) -> list[str]:
    names: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text or ''):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


def refresh_parameters(block: TemplateBlock) -> TemplateBlock:
    return block.model_copy(update={'parameters': extract_placeholders(block.template_text)})


def build_interpolation_params(
    submission: WaiverSubmission,
    *,
    now: datetime,
    validity_years: int = 1,
) -> dict[str, str]:
    representative = submission.representative
    return {
        'firstName': submission.passenger.first_name,
        'lastName': submission.passenger.last_name,
        'town': submission.passenger.town,
        'representativeFirstName': representative.first_name if representative else '',
        'representativeLastName': representative.last_name if representative else '',
        'email': submission.contact.email,
        'phone': submission.contact.phone,
        'currentDate': format_date(now),
        'expiryDate': format_date(add_years(now, validity_years)),
        'year': str(now.year),
        'waiverId': submission.waiver_id,
    }
