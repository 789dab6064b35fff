"""
Board date parsing.

Listings show relative or partial dates depending on post age:

- ``"04:09"``        posted today at 04:09
- ``"2025.08.04."``  full date (trailing dot optional)
- ``"08.04"``        this year
- ``"어제"``         yesterday (noon)
- ``"그저께"``       two days ago (noon)
- ISO-8601 strings   produced by our own serialization

Parsing is total: anything unrecognised resolves to "now". Publish time
only feeds display and staleness; identity and dedup use item ids.
"""

import logging
import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

BOARD_TZ = ZoneInfo("Asia/Seoul")

_TIME_ONLY = re.compile(r"^(\d{1,2}):(\d{2})$")
_FULL_DATE = re.compile(r"^(\d{4})\.(\d{1,2})\.(\d{1,2})\.?$")
_MONTH_DAY = re.compile(r"^(\d{1,2})\.(\d{1,2})\.?$")

_RELATIVE_DAYS = {
    "어제": 1,
    "그저께": 2,
    "그제": 2,
}


def parse_published_at(
    text: str | None,
    now: datetime | None = None,
    tz: tzinfo = BOARD_TZ,
) -> datetime:
    """
    Parse a board date string into an aware UTC datetime.

    Args:
        text: Raw date text from the listing
        now: Reference time (defaults to current time); used for
            relative and partial dates and as the fallback
        tz: Timezone the board renders dates in

    Returns:
        Aware datetime in UTC. Never raises.
    """
    reference = (now or datetime.now(timezone.utc)).astimezone(tz)
    raw = (text or "").strip()

    if not raw:
        return reference.astimezone(timezone.utc)

    try:
        parsed = _parse_local(raw, reference, tz)
    except (ValueError, OverflowError) as e:
        logger.warning("Malformed board date %r (%s), using current time", raw, e)
        parsed = None

    if parsed is None:
        logger.warning("Unrecognised board date %r, using current time", raw)
        return reference.astimezone(timezone.utc)

    return parsed.astimezone(timezone.utc)


def _parse_local(raw: str, reference: datetime, tz: tzinfo) -> datetime | None:
    match = _TIME_ONLY.match(raw)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        return datetime.combine(reference.date(), time(hour, minute), tzinfo=tz)

    match = _FULL_DATE.match(raw)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return datetime(year, month, day, tzinfo=tz)

    match = _MONTH_DAY.match(raw)
    if match:
        month, day = int(match.group(1)), int(match.group(2))
        return datetime(reference.year, month, day, tzinfo=tz)

    if raw in _RELATIVE_DAYS:
        day = reference.date() - timedelta(days=_RELATIVE_DAYS[raw])
        return datetime.combine(day, time(12, 0), tzinfo=tz)

    return _parse_iso(raw, tz)


def _parse_iso(raw: str, tz: tzinfo) -> datetime | None:
    candidate = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed
