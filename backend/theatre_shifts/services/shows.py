from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from theatre_shifts.core.errors import Conflict, NotFound, ValidationFailed
from theatre_shifts.core.timezone import parse_local
from theatre_shifts.models import Shift, Show, ShowDate, ShowInterval

log = logging.getLogger("theatre_shifts.shows")


def parse_window(start: str | datetime | None, end: str | datetime | None) -> tuple[datetime, datetime]:
    """Local start/end values -> aware UTC, rejecting missing values and end <= start."""
    if not start or not end:
        raise ValidationFailed("start_time and end_time are required")
    try:
        start_utc = parse_local(start)
        end_utc = parse_local(end)
    except ValueError:
        raise ValidationFailed("start_time and end_time must be YYYY-MM-DDTHH:MM")
    if end_utc <= start_utc:
        raise ValidationFailed("end_time must be after start_time")
    return start_utc, end_utc


# ---------- Shows ----------

def get_show(db: Session, show_id: int) -> Show:
    show = db.execute(select(Show).where(Show.id == show_id)).scalar_one_or_none()
    if show is None:
        raise NotFound("Show not found")
    return show


def list_shows(db: Session) -> list[dict]:
    stats = (
        select(
            ShowDate.show_id.label("show_id"),
            func.count(ShowDate.id).label("date_count"),
            func.min(ShowDate.start_time).label("first_date"),
            func.max(ShowDate.start_time).label("last_date"),
        )
        .group_by(ShowDate.show_id)
        .subquery()
    )
    rows = db.execute(
        select(Show, stats.c.date_count, stats.c.first_date, stats.c.last_date)
        .outerjoin(stats, stats.c.show_id == Show.id)
        .order_by(stats.c.first_date.desc().nulls_last(), Show.name.asc())
    ).all()
    return [
        {"show": show, "date_count": count or 0, "first_date": first, "last_date": last}
        for show, count, first, last in rows
    ]


def _find_show_by_name(db: Session, name: str) -> Show | None:
    return db.execute(select(Show).where(Show.name == name)).scalar_one_or_none()


def create_show(
    db: Session,
    *,
    name: str,
    performances: list[tuple[str | datetime, str | datetime]] | None = None,
    existing_show_id: int | None = None,
) -> tuple[Show, list[dict]]:
    """Create a show (or reuse one) and add its performances.

    A show with the same name is reused instead of failing. Each performance gets its own
    result entry: a duplicate start time is reported, not raised.
    """
    name = (name or "").strip()

    if existing_show_id is not None:
        show = get_show(db, existing_show_id)
    else:
        if not name:
            raise ValidationFailed("Show name is required")
        show = _find_show_by_name(db, name)
        if show is None:
            show = Show(name=name)
            db.add(show)
            db.flush()

    windows = [parse_window(start, end) for start, end in (performances or [])]

    results: list[dict] = []
    for start_utc, end_utc in windows:
        exists = db.execute(
            select(ShowDate.id).where(ShowDate.show_id == show.id, ShowDate.start_time == start_utc)
        ).scalar_one_or_none()
        if exists is not None:
            results.append({"start_time": start_utc, "ok": False, "error": "Performance already exists"})
            continue
        sd = ShowDate(show_id=show.id, start_time=start_utc, end_time=end_utc)
        db.add(sd)
        db.flush()
        results.append({"start_time": start_utc, "ok": True, "show_date_id": sd.id})

    db.commit()
    db.refresh(show)
    log.info(
        "show=%s created_dates=%s skipped=%s",
        show.id, sum(1 for r in results if r["ok"]), sum(1 for r in results if not r["ok"]),
    )
    return show, results


def update_show(db: Session, show_id: int, *, name: str) -> Show:
    show = get_show(db, show_id)
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Show name is required")
    show.name = name
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A show with this name already exists")
    db.refresh(show)
    return show


def delete_show(db: Session, show_id: int) -> None:
    get_show(db, show_id)

    date_ids = select(ShowDate.id).where(ShowDate.show_id == show_id)
    db.execute(delete(Shift).where(Shift.show_date_id.in_(date_ids)).execution_options(synchronize_session=False))
    db.execute(delete(ShowDate).where(ShowDate.show_id == show_id).execution_options(synchronize_session=False))
    db.execute(delete(ShowInterval).where(ShowInterval.show_id == show_id).execution_options(synchronize_session=False))
    db.execute(delete(Show).where(Show.id == show_id).execution_options(synchronize_session=False))
    db.commit()
    db.expunge_all()
    log.info("deleted show=%s", show_id)


# ---------- Show dates ----------

def get_show_date(db: Session, show_date_id: int) -> ShowDate:
    sd = db.execute(select(ShowDate).where(ShowDate.id == show_date_id)).scalar_one_or_none()
    if sd is None:
        raise NotFound("Show date not found")
    return sd


def list_show_dates(db: Session, show_id: int) -> list[dict]:
    get_show(db, show_id)
    rows = db.execute(
        select(
            ShowDate,
            func.count(Shift.id),
            func.count(Shift.participant_id),
        )
        .outerjoin(Shift, Shift.show_date_id == ShowDate.id)
        .where(ShowDate.show_id == show_id)
        .group_by(ShowDate.id)
        .order_by(ShowDate.start_time.asc())
    ).all()
    return [{"show_date": sd, "total_shifts": total, "filled_shifts": filled} for sd, total, filled in rows]


def create_show_date(db: Session, *, show_id: int, start_time, end_time) -> ShowDate:
    get_show(db, show_id)
    start_utc, end_utc = parse_window(start_time, end_time)
    sd = ShowDate(show_id=show_id, start_time=start_utc, end_time=end_utc)
    db.add(sd)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Performance already exists")
    db.refresh(sd)
    return sd


def update_show_date(db: Session, show_date_id: int, *, start_time, end_time) -> ShowDate:
    sd = get_show_date(db, show_date_id)
    sd.start_time, sd.end_time = parse_window(start_time, end_time)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Performance already exists")
    db.refresh(sd)
    return sd


def delete_show_date(db: Session, show_date_id: int) -> None:
    get_show_date(db, show_date_id)
    db.execute(delete(Shift).where(Shift.show_date_id == show_date_id).execution_options(synchronize_session=False))
    db.execute(delete(ShowDate).where(ShowDate.id == show_date_id).execution_options(synchronize_session=False))
    db.commit()
    db.expunge_all()
    log.info("deleted show_date=%s", show_date_id)


# ---------- Intervals ----------

def _check_interval(start_minutes: int, duration_minutes: int) -> None:
    if start_minutes < 0:
        raise ValidationFailed("start_minutes must be >= 0")
    if duration_minutes <= 0:
        raise ValidationFailed("duration_minutes must be > 0")


def list_intervals(db: Session, show_id: int) -> list[ShowInterval]:
    get_show(db, show_id)
    return list(
        db.execute(
            select(ShowInterval)
            .where(ShowInterval.show_id == show_id)
            .order_by(ShowInterval.start_minutes.asc())
        ).scalars().all()
    )


def get_interval(db: Session, interval_id: int) -> ShowInterval:
    it = db.execute(select(ShowInterval).where(ShowInterval.id == interval_id)).scalar_one_or_none()
    if it is None:
        raise NotFound("Interval not found")
    return it


def create_interval(db: Session, *, show_id: int, start_minutes: int, duration_minutes: int) -> ShowInterval:
    get_show(db, show_id)
    _check_interval(start_minutes, duration_minutes)
    it = ShowInterval(show_id=show_id, start_minutes=start_minutes, duration_minutes=duration_minutes)
    db.add(it)
    db.commit()
    db.refresh(it)
    return it


def update_interval(db: Session, interval_id: int, *, start_minutes: int, duration_minutes: int) -> ShowInterval:
    it = get_interval(db, interval_id)
    _check_interval(start_minutes, duration_minutes)
    it.start_minutes = start_minutes
    it.duration_minutes = duration_minutes
    db.commit()
    db.refresh(it)
    return it


def delete_interval(db: Session, interval_id: int) -> None:
    it = get_interval(db, interval_id)
    db.delete(it)
    db.commit()
