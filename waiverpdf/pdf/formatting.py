from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import tzlocal

from waiverpdf.types import RawTimestamp


logger = logging.getLogger(__name__)

MONTH_NAMES = (
    'January',
    'February',
    'March',
    'April',
    'May',
    'June',
    'July',
    'August',
    'September',
    'October',
    'November',
    'December',
)

# Epoch values below this are seconds, anything larger is milliseconds.
EPOCH_MILLIS_THRESHOLD = 100_000_000_000


def format_date(value: date | datetime) -> str:
    """Format as ``"5 March 2025"``: no zero padding, full English month name."""
    return f'{value.day} {MONTH_NAMES[value.month - 1]} {value.year}'


def format_effective_date(value: str) -> str:
    token = str(value or '').strip()
    try:
        return format_date(date.fromisoformat(token[:10]))
    except ValueError:
        return token


def local_zone_name() -> str | None:
    """IANA name of the host's zone, or ``None`` when it cannot be determined."""
    try:
        return tzlocal.get_localzone_name()
    except Exception as exc:
        logger.warning('Could not determine the local time zone: %s', exc)
        return None


def resolve_zone(name: str | None) -> ZoneInfo:
    """Zone for ``name``; an empty name means the host's local zone, UTC as a last resort."""
    token = str(name or '').strip() or local_zone_name() or 'UTC'
    try:
        return ZoneInfo(token)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning('Unknown render time zone %r; falling back to UTC', token)
        return ZoneInfo('UTC')


def normalize_epoch_to_millis(value: float) -> float:
    return value * 1000 if abs(value) < EPOCH_MILLIS_THRESHOLD else value


def to_datetime(value: RawTimestamp, *, zone: ZoneInfo | None = None) -> datetime | None:
    """Coerce a captured timestamp into an aware datetime, or ``None`` if unusable.

    Naive datetimes and ISO strings without an offset are read in ``zone``.
    """
    zone = zone or ZoneInfo('UTC')
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=zone)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=zone)

    if isinstance(value, (int, float)):
        return _from_epoch(float(value))

    token = str(value).strip()
    if not token:
        return None
    try:
        return _from_epoch(float(token))
    except ValueError:
        pass

    if token.endswith('Z'):
        token = token[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(token)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=zone)


def _from_epoch(value: float) -> datetime | None:
    millis = normalize_epoch_to_millis(value)
    try:
        return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def format_timestamp(value: RawTimestamp, *, zone_name: str | None) -> str:
    """Format as ``YYYY-MM-DD HH:MM:SS <IANA zone>`` in the render zone, ``N/A`` if missing."""
    zone = resolve_zone(zone_name)
    moment = to_datetime(value, zone=zone)
    if moment is None:
        return 'N/A'
    local = moment.astimezone(zone)
    return f"{local.strftime('%Y-%m-%d %H:%M:%S')} {zone.key}"


def add_years(value: date, years: int) -> date:
    # Feb 29 rolls over to Mar 1 when the target year has no leap day
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, month=3, day=1)


def document_version(organization_short_name: str, version: str) -> str:
    return f'{organization_short_name}-PAS({version})'
