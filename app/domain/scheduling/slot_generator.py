"""
Slot generation shared by every calendar backend.

Turns opening hours and busy periods into fixed-length appointment slots.
All interval checks are half-open: a busy period that ends exactly when a
slot starts (or starts exactly when it ends) does not block the slot.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...config import SLOT_DURATION_MINUTES
from .schemas import BusyPeriod, DateRange, DayHours, TimeSlot

logger = logging.getLogger(__name__)

# Index matches date.weekday()
WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

# Stored "schedule" entries number days from Sunday
_SUNDAY_FIRST = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


def default_weekly_hours() -> dict[str, DayHours]:
    """Mon-Fri 09:00-17:00, weekends closed"""
    hours = {name: DayHours(open="09:00", close="17:00") for name in WEEKDAY_NAMES[:5]}
    hours["saturday"] = DayHours(closed=True)
    hours["sunday"] = DayHours(closed=True)
    return hours


def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """Resolve a tenant timezone name, falling back to UTC"""
    if not tz_name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"⚠️ Unknown timezone '{tz_name}', using UTC")
        return ZoneInfo("UTC")


def localize(value: datetime, zone: ZoneInfo) -> datetime:
    """Attach the tenant zone to naive datetimes; leave aware ones as they are"""
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open interval overlap"""
    return start < other_end and end > other_start


def _parse_clock(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def parse_operating_hours(config: Optional[dict]) -> tuple[dict[str, DayHours], set[date]]:
    """
    Read a tenant's operating_hours configuration.

    Two stored shapes are accepted:
      {"monday": {"open": "09:00", "close": "17:00", "closed": false}, ...}
      {"schedule": [{"day": 1, "enabled": true, "slots": [{"start": "08:00", "end": "18:00"}]}],
       "holidays": ["2026-12-25"]}

    Days that are not configured keep the defaults.

    Returns:
        (weekly hours keyed by weekday name, set of closed dates)
    """
    weekly = default_weekly_hours()
    holidays: set[date] = set()

    if not config:
        return weekly, holidays

    if "schedule" in config or "holidays" in config:
        for entry in config.get("schedule") or []:
            try:
                name = _SUNDAY_FIRST[int(entry["day"])]
            except (KeyError, ValueError, IndexError, TypeError):
                logger.warning(f"⚠️ Ignoring malformed schedule entry: {entry}")
                continue

            slots = entry.get("slots") or []
            if not entry.get("enabled", True) or not slots:
                weekly[name] = DayHours(closed=True)
                continue

            # Split shifts collapse to the outer opening window
            weekly[name] = DayHours(
                open=min(s["start"] for s in slots),
                close=max(s["end"] for s in slots),
            )

        for raw in config.get("holidays") or []:
            try:
                holidays.add(date.fromisoformat(raw))
            except (TypeError, ValueError):
                logger.warning(f"⚠️ Ignoring malformed holiday: {raw}")

        return weekly, holidays

    for name in WEEKDAY_NAMES:
        day_config = config.get(name)
        if day_config is None:
            continue
        if day_config.get("closed"):
            weekly[name] = DayHours(closed=True)
        else:
            weekly[name] = DayHours(
                open=day_config.get("open", "09:00"),
                close=day_config.get("close", "17:00"),
            )

    return weekly, holidays


def generate_slots(
    date_range: DateRange,
    busy_periods: Iterable[BusyPeriod],
    weekly_hours: Optional[dict[str, DayHours]] = None,
    slot_minutes: int = SLOT_DURATION_MINUTES,
    tz: Optional[str] = None,
    closed_dates: Optional[set[date]] = None,
) -> list[TimeSlot]:
    """
    Generate fixed-length slots for every open day in the range.

    A candidate is kept only when it lies entirely inside both the requested
    range and the day's opening window. It is unavailable iff some busy
    period satisfies slot_start < busy_end and slot_end > busy_start.

    Callers are expected to bound the range; cost is
    O(days x slots per day x busy periods).
    """
    zone = get_zone(tz)
    hours = weekly_hours or default_weekly_hours()
    closed = closed_dates or set()
    step = timedelta(minutes=slot_minutes)

    range_start = localize(date_range.start, zone)
    range_end = localize(date_range.end, zone)

    busy = [(localize(b.start, zone), localize(b.end, zone)) for b in busy_periods]

    slots: list[TimeSlot] = []
    current_day = range_start.astimezone(zone).date()
    last_day = range_end.astimezone(zone).date()

    while current_day <= last_day:
        day_hours = hours.get(WEEKDAY_NAMES[current_day.weekday()])

        if day_hours is None or day_hours.closed or current_day in closed:
            current_day += timedelta(days=1)
            continue

        open_at = datetime.combine(current_day, _parse_clock(day_hours.open), tzinfo=zone)
        close_at = datetime.combine(current_day, _parse_clock(day_hours.close), tzinfo=zone)

        slot_start = open_at
        while slot_start + step <= close_at:
            slot_end = slot_start + step

            if slot_start >= range_start and slot_end <= range_end:
                is_busy = any(overlaps(slot_start, slot_end, b_start, b_end) for b_start, b_end in busy)
                slots.append(
                    TimeSlot(
                        start=slot_start.astimezone(timezone.utc),
                        end=slot_end.astimezone(timezone.utc),
                        available=not is_busy,
                    )
                )

            slot_start = slot_end

        current_day += timedelta(days=1)

    return slots
