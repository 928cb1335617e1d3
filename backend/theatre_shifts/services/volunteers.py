from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from theatre_shifts.core.errors import Conflict, NotFound, ValidationFailed
from theatre_shifts.core.timezone import now_utc
from theatre_shifts.models import Participant, SentEmail, Shift, ShowDate
from theatre_shifts.services.assignments import get_volunteer
from theatre_shifts.services.shifts import shift_query

log = logging.getLogger("theatre_shifts.volunteers")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _clean_phone(phone: str | None) -> str | None:
    phone = (phone or "").strip()
    return phone or None


def list_volunteers(db: Session, *, approved: bool | None = None) -> list[dict]:
    counts = (
        select(Shift.participant_id.label("pid"), func.count(Shift.id).label("shift_count"))
        .where(Shift.participant_id.is_not(None))
        .group_by(Shift.participant_id)
        .subquery()
    )
    q = (
        select(Participant, counts.c.shift_count)
        .outerjoin(counts, counts.c.pid == Participant.id)
        .order_by(Participant.name.asc(), Participant.id.asc())
    )
    if approved is not None:
        q = q.where(Participant.approved.is_(approved))
    return [{"volunteer": p, "shift_count": n or 0} for p, n in db.execute(q).all()]


def find_by_email(db: Session, email: str) -> Participant | None:
    return db.execute(
        select(Participant).where(func.lower(Participant.email) == normalize_email(email))
    ).scalar_one_or_none()


def create_volunteer(
    db: Session,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    approved: bool = True,
) -> Participant:
    name = (name or "").strip()
    email = normalize_email(email)
    if not name or not email:
        raise ValidationFailed("name and email are required")
    if find_by_email(db, email) is not None:
        raise Conflict("A volunteer with this email already exists")

    volunteer = Participant(name=name, email=email, phone=_clean_phone(phone), approved=approved)
    db.add(volunteer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A volunteer with this email already exists")
    db.refresh(volunteer)
    log.info("created volunteer=%s approved=%s", volunteer.id, approved)
    return volunteer


def register_volunteer(db: Session, *, name: str, email: str, phone: str) -> Participant:
    """Public sign-up: every field is required and the account waits for approval."""
    if not (name or "").strip() or not (email or "").strip() or not (phone or "").strip():
        raise ValidationFailed("name, email and phone are required")
    return create_volunteer(db, name=name, email=email, phone=phone, approved=False)


def update_volunteer(
    db: Session,
    volunteer_id: int,
    *,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
) -> Participant:
    volunteer = get_volunteer(db, volunteer_id)
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationFailed("name must not be empty")
        volunteer.name = name
    if email is not None:
        email = normalize_email(email)
        if not email:
            raise ValidationFailed("email must not be empty")
        other = find_by_email(db, email)
        if other is not None and other.id != volunteer.id:
            raise Conflict("A volunteer with this email already exists")
        volunteer.email = email
    if phone is not None:
        volunteer.phone = _clean_phone(phone)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A volunteer with this email already exists")
    db.refresh(volunteer)
    return volunteer


def delete_volunteer(db: Session, volunteer_id: int) -> None:
    get_volunteer(db, volunteer_id)
    db.execute(
        update(Shift)
        .where(Shift.participant_id == volunteer_id)
        .values(participant_id=None)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(SentEmail)
        .where(SentEmail.to_participant_id == volunteer_id)
        .values(to_participant_id=None)
        .execution_options(synchronize_session=False)
    )
    db.execute(delete(Participant).where(Participant.id == volunteer_id).execution_options(synchronize_session=False))
    db.commit()
    db.expunge_all()
    log.info("deleted volunteer=%s", volunteer_id)


def find_approved_by_email(db: Session, email: str) -> Participant:
    volunteer = find_by_email(db, email)
    if volunteer is None or not volunteer.approved:
        raise NotFound("Email not found")
    return volunteer


# ---------- Shifts seen by one volunteer ----------

def volunteer_shifts(db: Session, volunteer_id: int) -> list[Shift]:
    get_volunteer(db, volunteer_id)
    q = shift_query().where(Shift.participant_id == volunteer_id)
    return list(db.execute(q).scalars().unique().all())


def upcoming_shifts(db: Session, volunteer_id: int) -> list[Shift]:
    get_volunteer(db, volunteer_id)
    q = shift_query().where(Shift.participant_id == volunteer_id, Shift.depart_time >= now_utc())
    return list(db.execute(q).scalars().unique().all())


def available_shifts(db: Session, volunteer_id: int) -> list[Shift]:
    """Unfilled future shifts on performances where the volunteer holds nothing yet.

    Unapproved volunteers don't see future shifts at all.
    """
    volunteer = get_volunteer(db, volunteer_id)
    if not volunteer.approved:
        return []

    held = select(Shift.show_date_id).where(Shift.participant_id == volunteer_id)
    q = shift_query().where(
        Shift.participant_id.is_(None),
        ShowDate.start_time >= now_utc(),
        Shift.show_date_id.not_in(held),
    )
    return list(db.execute(q).scalars().unique().all())


def show_shifts(db: Session, volunteer_id: int, show_id: int) -> list[Shift]:
    """The volunteer's shifts on performances of one show that haven't finished yet."""
    q = shift_query().where(
        Shift.participant_id == volunteer_id,
        ShowDate.show_id == show_id,
        Shift.depart_time >= now_utc(),
    )
    return list(db.execute(q).scalars().unique().all())


# ---------- Email recipients ----------

def show_week_recipients(
    db: Session,
    *,
    start: datetime,
    end: datetime | None = None,
    show_id: int | None = None,
) -> list[tuple[Participant, ShowDate]]:
    """Approved volunteers holding a shift on a performance starting in [start, end].

    One row per volunteer, paired with their first matching performance.
    """
    q = (
        select(Participant, ShowDate)
        .join(Shift, Shift.participant_id == Participant.id)
        .join(ShowDate, ShowDate.id == Shift.show_date_id)
        .where(Participant.approved.is_(True), ShowDate.start_time >= start)
        .order_by(Participant.name.asc(), Participant.id.asc(), ShowDate.start_time.asc())
    )
    if end is not None:
        q = q.where(ShowDate.start_time <= end)
    if show_id is not None:
        q = q.where(ShowDate.show_id == show_id)

    seen: set[int] = set()
    rows: list[tuple[Participant, ShowDate]] = []
    for volunteer, sd in db.execute(q).all():
        if volunteer.id in seen:
            continue
        seen.add(volunteer.id)
        rows.append((volunteer, sd))
    return rows


def show_volunteers(db: Session, show_id: int) -> list[dict]:
    """Volunteers to pick from when sending show-week emails for one show."""
    counts = dict(
        db.execute(
            select(Shift.participant_id, func.count(Shift.id))
            .join(ShowDate, ShowDate.id == Shift.show_date_id)
            .where(ShowDate.show_id == show_id, ShowDate.start_time >= now_utc())
            .group_by(Shift.participant_id)
        ).all()
    )
    return [
        {"volunteer": p, "shift_count": counts.get(p.id, 0), "next_performance": sd}
        for p, sd in show_week_recipients(db, start=now_utc(), show_id=show_id)
    ]
