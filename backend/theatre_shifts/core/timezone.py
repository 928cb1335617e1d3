"""Display helpers for stored timestamps.

Timestamps are stored as UTC. Every function here renders or parses them through
the one configured civil zone (``settings.DISPLAY_TIMEZONE``) so admin pages,
volunteer pages and emails always agree.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from theatre_shifts.core.config import settings


@lru_cache(maxsize=1)
def display_zone() -> ZoneInfo:
    return ZoneInfo(settings.DISPLAY_TIMEZONE)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Naive values come back from SQLite without tzinfo; they are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime) -> datetime:
    return as_utc(dt).astimezone(display_zone())


def local_today() -> date:
    return now_utc().astimezone(display_zone()).date()


def format_date(dt: datetime) -> str:
    return to_local(dt).strftime("%d/%m/%Y")


def format_time(dt: datetime, hour12: bool = False) -> str:
    local = to_local(dt)
    if hour12:
        return f"{local.hour % 12 or 12}:{local.minute:02d}{'pm' if local.hour >= 12 else 'am'}"
    return local.strftime("%H:%M")


def format_date_time(dt: datetime) -> str:
    return f"{format_date(dt)}, {format_time(dt)}"


def format_long_date(dt: datetime) -> str:
    # e.g. "Friday 18 Oct 2024"
    local = to_local(dt)
    return f"{local.strftime('%A')} {local.day} {local.strftime('%b %Y')}"


def is_today(dt: datetime) -> bool:
    return to_local(dt).date() == local_today()


def is_different_day(first: datetime, second: datetime) -> bool:
    return to_local(first).date() != to_local(second).date()


def format_shift_time_range(arrive: datetime, depart: datetime, hour12: bool = False) -> str:
    text = f"{format_time(arrive, hour12)} - {format_time(depart, hour12)}"
    if is_different_day(arrive, depart):
        text += " +1 day"
    return text


def format_performance(start: datetime, end: datetime) -> str:
    return f"{format_date(start)}, {format_shift_time_range(start, end)}"


def to_local_input(dt: datetime) -> str:
    """Value for an <input type="datetime-local">."""
    return to_local(dt).strftime("%Y-%m-%dT%H:%M")


def parse_local(value: str | datetime) -> datetime:
    """Interpret a wall-clock value in the display zone and return it as aware UTC.

    Accepts ``YYYY-MM-DDTHH:MM[:SS]`` (or a space instead of ``T``). Values that already
    carry an offset are converted as-is.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        raw = (value or "").strip()
        if not raw:
            raise ValueError("empty datetime")
        dt = datetime.fromisoformat(raw.replace(" ", "T", 1))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=display_zone())
    return dt.astimezone(timezone.utc)


def parse_clock(value: str) -> time:
    try:
        hh, mm = (value or "").strip().split(":")[:2]
        return time(int(hh), int(mm))
    except (ValueError, TypeError):
        raise ValueError(f"Bad time format {value!r}, expected HH:MM")


def combine_local(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock, tzinfo=display_zone()).astimezone(timezone.utc)


def shift_window(day: date, arrive: time, depart: time) -> tuple[datetime, datetime, bool]:
    """Arrive/depart for a shift on ``day``; a depart at or before arrive rolls to the next day."""
    next_day = (depart.hour, depart.minute) <= (arrive.hour, arrive.minute)
    depart_day = day + timedelta(days=1) if next_day else day
    return combine_local(day, arrive), combine_local(depart_day, depart), next_day


def iso_local(dt: datetime | None) -> str | None:
    return to_local(dt).isoformat(timespec="seconds") if dt else None
