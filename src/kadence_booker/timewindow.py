from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
import logging
import re
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .entities import first_field, get_entity_id
from .errors import ValidationError
from .resolver import ApiReader


logger = logging.getLogger(__name__)

TIMEZONE_FIELDS = ("timezone", "timeZone", "tz", "time_zone")
DEFAULT_TIMEZONE = "UTC"
DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})")


@dataclass(frozen=True)
class TimeWindow:
    start_utc: str
    end_utc: str
    date: str
    timezone: str


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_building_timezone(building: dict[str, Any]) -> str:
    value = first_field(building, TIMEZONE_FIELDS)
    return str(value).strip() if value is not None else DEFAULT_TIMEZONE


def ensure_building_timezone(client: ApiReader, building: dict[str, Any]) -> str:
    """Return the building's zone, fetching the full record when the listing lacked one.

    Collection listings sometimes omit the zone or report a bare "UTC"; the
    detail record is consulted once before settling for that.
    """
    tz = resolve_building_timezone(building)
    if tz and tz != DEFAULT_TIMEZONE:
        return tz
    building_id = get_entity_id(building)
    if not building_id:
        return tz
    try:
        full = client.get(f"/buildings/{building_id}")
    except Exception as e:
        logger.warning("Building %s detail lookup failed, using %s: %s", building_id, tz, e)
        return tz
    if isinstance(full, dict):
        detailed = first_field(full, TIMEZONE_FIELDS)
        if detailed is not None:
            return str(detailed).strip()
    return tz


def parse_date(value: str) -> date:
    raw = (value or "").strip()
    if not _DATE_RE.fullmatch(raw):
        raise ValidationError(f"Invalid date format (expected YYYY-MM-DD): {value}")
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"Invalid date format (expected YYYY-MM-DD): {value}") from None


def parse_time_of_day(value: str | None, default: str) -> time:
    """Parse H:mm / HH:mm, substituting `default` for anything else."""
    for candidate in ((value or "").strip(), default):
        m = _TIME_RE.fullmatch(candidate)
        if m and int(m.group(1)) < 24 and int(m.group(2)) < 60:
            return time(int(m.group(1)), int(m.group(2)))
    raise ValueError(f"Default time is not H:mm: {default}")


def compute_time_window(
    tz_name: str,
    date_str: str,
    start_time: str | None = None,
    end_time: str | None = None,
) -> TimeWindow:
    day = parse_date(date_str)
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown building timezone: {tz_name}") from None

    start_local = datetime.combine(day, parse_time_of_day(start_time, DEFAULT_START_TIME), tzinfo=tz)
    end_local = datetime.combine(day, parse_time_of_day(end_time, DEFAULT_END_TIME), tzinfo=tz)
    return TimeWindow(
        start_utc=_iso(start_local),
        end_utc=_iso(end_local),
        date=day.isoformat(),
        timezone=tz_name,
    )
