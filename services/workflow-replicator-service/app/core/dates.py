# services/workflow-replicator-service/app/core/dates.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger("app.core.dates")

ZERO = timedelta(0)


def is_date_only(value: str) -> bool:
    return isinstance(value, str) and len(value.strip()) == 10


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Notion date string ("2024-01-05" or full ISO 8601) into an aware datetime.
    Naive values are taken as UTC so date-only and timestamped values can be mixed.
    """
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        logger.warning("Unparseable date value: %r", value)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_like(original: str, dt: datetime) -> str:
    """Render dt with the same precision as the original string."""
    if is_date_only(original):
        return dt.date().isoformat()
    return dt.isoformat()


def compute_offset(templates: Iterable[Any], target_date: Optional[datetime]) -> timedelta:
    """
    Offset that moves the latest dated template onto target_date.

    Every date in the batch is shifted by the same amount, so the spacing between
    any two templates is preserved. Zero when there is no target date or no dated
    template.
    """
    if target_date is None:
        return ZERO

    dates = [t.date for t in templates if getattr(t, "date", None) is not None]
    if not dates:
        return ZERO

    if target_date.tzinfo is None:
        target_date = target_date.replace(tzinfo=timezone.utc)
    latest = max(dates)
    offset = target_date - latest
    logger.info("Date offset computed: latest=%s target=%s offset=%s", latest.isoformat(), target_date.isoformat(), offset)
    return offset


def translate_date_value(value: Optional[Dict[str, Any]], offset: timedelta) -> Optional[Dict[str, Any]]:
    """
    Shift a Notion date value {start, end?, time_zone?} by offset.

    The end keeps its original distance from the start. An inverted range (in the
    source or after translation) loses its end bound. Returns None when the start
    cannot be read, in which case the caller drops the property.
    """
    if not value or not value.get("start"):
        return None

    raw_start = value["start"]
    start = parse_datetime(raw_start)
    if start is None:
        return None

    new_start = start + offset
    out: Dict[str, Any] = {"start": format_like(raw_start, new_start)}
    if value.get("time_zone"):
        out["time_zone"] = value["time_zone"]

    raw_end = value.get("end")
    if raw_end:
        end = parse_datetime(raw_end)
        if end is None:
            logger.warning("Dropping unreadable end bound %r", raw_end)
        elif start >= end:
            logger.warning("Dropping end bound of inverted range %s -> %s", raw_start, raw_end)
        else:
            new_end = new_start + (end - start)
            rendered_end = format_like(raw_end, new_end)
            if parse_datetime(rendered_end) <= parse_datetime(out["start"]):
                logger.warning("Dropping end bound: translated range %s -> %s is inverted", out["start"], rendered_end)
            else:
                out["end"] = rendered_end
    return out
