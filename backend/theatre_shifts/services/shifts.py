from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, joinedload

from theatre_shifts.core.errors import ValidationFailed
from theatre_shifts.core.timezone import (
    as_utc,
    format_date,
    format_performance,
    format_shift_time_range,
    iso_local,
    now_utc,
    parse_clock,
    parse_local,
    shift_window,
    to_local,
)
from theatre_shifts.models import Participant, Shift, ShowDate
from theatre_shifts.services.assignments import get_shift

log = logging.getLogger("theatre_shifts.shifts")

DEFAULT_ROLES = [
    "FOH Manager",
    "FOH 2IC",
    "Usher 1 (Can see show)",
    "Usher 2 (Can see show)",
    "Usher 3 (Can see show)",
    "Tea and Coffee 1 (Can see show)",
    "Tea and Coffee 2 (Can see show)",
    "Raffle Ticket Selling",
    "Box Office",
]


# ---------- Serialisation ----------

def shift_payload(shift: Shift) -> dict:
    sd = shift.show_date
    p = shift.participant
    return {
        "id": shift.id,
        "show_date_id": shift.show_date_id,
        "show_id": sd.show_id,
        "show_name": sd.show.name,
        "role": shift.role,
        "arrive_time": iso_local(shift.arrive_time),
        "depart_time": iso_local(shift.depart_time),
        "time_label": format_shift_time_range(shift.arrive_time, shift.depart_time),
        "date_label": format_date(sd.start_time),
        "participant": {"id": p.id, "name": p.name} if p else None,
    }


def group_by_show(shifts: Iterable[Shift]) -> list[dict]:
    """Nest shifts as show -> performance -> shifts, keeping input order."""
    shows: dict[int, dict] = {}
    for sh in shifts:
        sd = sh.show_date
        show = shows.setdefault(
            sd.show_id,
            {"show_id": sd.show_id, "show_name": sd.show.name, "performances": {}},
        )
        perf = show["performances"].setdefault(
            sd.id,
            {
                "show_date_id": sd.id,
                "start_time": iso_local(sd.start_time),
                "end_time": iso_local(sd.end_time),
                "label": format_performance(sd.start_time, sd.end_time),
                "shifts": [],
            },
        )
        perf["shifts"].append(shift_payload(sh))

    return [{**s, "performances": list(s["performances"].values())} for s in shows.values()]


def shift_query():
    return (
        select(Shift)
        .join(ShowDate, ShowDate.id == Shift.show_date_id)
        .options(
            joinedload(Shift.show_date).joinedload(ShowDate.show),
            joinedload(Shift.participant),
        )
        .order_by(ShowDate.start_time.asc(), Shift.arrive_time.asc(), Shift.role.asc(), Shift.id.asc())
    )


# ---------- Queries ----------

def list_shifts(db: Session, *, upcoming_only: bool = False) -> list[Shift]:
    q = shift_query()
    if upcoming_only:
        q = q.where(ShowDate.end_time >= now_utc())
    return list(db.execute(q).scalars().unique().all())


def list_unfilled(db: Session) -> list[Shift]:
    q = shift_query().where(Shift.participant_id.is_(None), ShowDate.start_time >= now_utc())
    return list(db.execute(q).scalars().unique().all())


def shifts_for_show_date(db: Session, show_date_id: int) -> list[Shift]:
    q = shift_query().where(Shift.show_date_id == show_date_id)
    return list(db.execute(q).scalars().unique().all())


def stats(db: Session) -> dict:
    now = now_utc()
    unfilled = db.execute(
        select(func.count(Shift.id))
        .join(ShowDate, ShowDate.id == Shift.show_date_id)
        .where(Shift.participant_id.is_(None), ShowDate.start_time >= now)
    ).scalar_one()
    bare_dates = db.execute(
        select(func.count(ShowDate.id))
        .where(ShowDate.start_time >= now, ~ShowDate.shifts.any())
    ).scalar_one()
    pending = db.execute(
        select(func.count(Participant.id)).where(Participant.approved.is_(False))
    ).scalar_one()
    upcoming = db.execute(
        select(func.count(ShowDate.id)).where(ShowDate.start_time >= now)
    ).scalar_one()
    return {
        "unfilled_shifts": unfilled,
        "performances_without_shifts": bare_dates,
        "pending_volunteers": pending,
        "upcoming_performances": upcoming,
    }


def server_time() -> dict:
    now = now_utc()
    local = to_local(now)
    return {
        "utc": now.isoformat(timespec="seconds"),
        "local": local.isoformat(timespec="seconds"),
        "date": local.strftime("%d/%m/%Y"),
        "time": local.strftime("%H:%M"),
        "timezone": str(local.tzinfo),
    }


# ---------- Mutations ----------

def create_shifts(
    db: Session,
    *,
    show_date_ids: list[int],
    roles: list[str],
    arrive_time: str,
    depart_time: str,
) -> list[dict]:
    """Create one shift per (performance, role).

    ``arrive_time``/``depart_time`` are HH:MM on the performance's local date; a depart
    at or before arrive lands on the next day. Missing performances are reported per item.
    """
    roles = [r.strip() for r in roles if r and r.strip()]
    if not show_date_ids or not roles:
        raise ValidationFailed("show_date_ids and roles are required")
    try:
        arrive_clock = parse_clock(arrive_time)
        depart_clock = parse_clock(depart_time)
    except ValueError as e:
        raise ValidationFailed(str(e))

    results: list[dict] = []
    for sd_id in dict.fromkeys(show_date_ids):
        sd = db.execute(select(ShowDate).where(ShowDate.id == sd_id)).scalar_one_or_none()
        if sd is None:
            results.extend({"show_date_id": sd_id, "role": r, "ok": False, "error": "Performance not found"} for r in roles)
            continue

        day = to_local(sd.start_time).date()
        arrive_utc, depart_utc, next_day = shift_window(day, arrive_clock, depart_clock)
        for role in roles:
            sh = Shift(show_date_id=sd.id, role=role, arrive_time=arrive_utc, depart_time=depart_utc)
            db.add(sh)
            db.flush()
            results.append({"show_date_id": sd.id, "role": role, "ok": True, "shift_id": sh.id, "next_day": next_day})

    db.commit()
    log.info("created shifts ok=%s failed=%s", sum(1 for r in results if r["ok"]), sum(1 for r in results if not r["ok"]))
    return results


def update_shift(db: Session, shift_id: int, *, role: str | None = None, arrive_time=None, depart_time=None) -> Shift:
    shift = get_shift(db, shift_id)
    if role is not None:
        role = role.strip()
        if not role:
            raise ValidationFailed("role must not be empty")
        shift.role = role

    try:
        arrive = parse_local(arrive_time) if arrive_time else shift.arrive_time
        depart = parse_local(depart_time) if depart_time else shift.depart_time
    except ValueError:
        raise ValidationFailed("arrive_time and depart_time must be YYYY-MM-DDTHH:MM")
    if as_utc(depart) <= as_utc(arrive):
        raise ValidationFailed("depart_time must be after arrive_time")
    shift.arrive_time = arrive
    shift.depart_time = depart

    db.commit()
    db.refresh(shift)
    return shift


def delete_shift(db: Session, shift_id: int) -> None:
    get_shift(db, shift_id)
    db.execute(delete(Shift).where(Shift.id == shift_id).execution_options(synchronize_session=False))
    db.commit()
    db.expunge_all()
    log.info("deleted shift=%s", shift_id)
