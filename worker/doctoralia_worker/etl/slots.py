"""Parsing of the directory's slot-availability payload."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from doctoralia_worker.models import IN_PERSON, TimeSlot

logger = logging.getLogger(__name__)

SITE_TZ = timezone(timedelta(hours=-5))
WINDOW_DAYS = 14
SLOT_DURATION = timedelta(hours=1)


def availability_window(today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """Midnight today to midnight ``WINDOW_DAYS`` later, in site time."""
    today = today or datetime.now(SITE_TZ).date()
    start = datetime.combine(today, time(0, 0), tzinfo=SITE_TZ)
    return start, start + timedelta(days=WINDOW_DAYS)


def window_params(today: Optional[date] = None) -> Dict[str, str]:
    start, end = availability_window(today)
    return {
        "start": start.isoformat(timespec="seconds"),
        "end": end.isoformat(timespec="seconds"),
        "includingSaasOnlyCalendar": "false",
    }


def _parse_instant(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=SITE_TZ)
    return parsed


def parse_slots(payload: Any, *, window_end: Optional[datetime] = None) -> List[TimeSlot]:
    """Open, bookable slots as one-hour in-person blocks.

    Anything that does not look like the expected payload yields an empty
    list.
    """
    if not isinstance(payload, dict):
        return []
    items = payload.get("_items") or []
    if not isinstance(items, list):
        return []

    slots: List[TimeSlot] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if item.get("booked") or not item.get("booking_url"):
            continue
        start_at = _parse_instant(item.get("start"))
        if start_at is None:
            logger.debug("Ignoring slot with unparseable start %r", item.get("start"))
            continue
        end_at = start_at + SLOT_DURATION
        if window_end is not None and end_at > window_end:
            continue
        slots.append(TimeSlot(start_at=start_at, end_at=end_at, modality=IN_PERSON))
    return slots
