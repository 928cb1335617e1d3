"""Volunteer <-> shift assignment workflow.

A shift holds at most one volunteer (``shifts.participant_id``). Every write goes through
a conditional UPDATE so two requests racing for the same shift are serialised by the
database: the loser sees zero affected rows and gets ``Conflict`` instead of overwriting.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from theatre_shifts.core.errors import (
    AssignmentMismatch,
    Conflict,
    DomainError,
    NotFound,
    SwapFailed,
    ValidationFailed,
)
from theatre_shifts.models import Participant, Shift

log = logging.getLogger("theatre_shifts.assignments")


def get_shift(db: Session, shift_id: int) -> Shift:
    shift = db.execute(select(Shift).where(Shift.id == shift_id)).scalar_one_or_none()
    if shift is None:
        raise NotFound("Shift not found")
    return shift


def get_volunteer(db: Session, volunteer_id: int) -> Participant:
    volunteer = db.execute(select(Participant).where(Participant.id == volunteer_id)).scalar_one_or_none()
    if volunteer is None:
        raise NotFound("Volunteer not found")
    return volunteer


def assign(db: Session, *, volunteer_id: int, shift_id: int, commit: bool = True) -> Shift:
    get_volunteer(db, volunteer_id)
    shift = get_shift(db, shift_id)

    if shift.participant_id == volunteer_id:
        raise Conflict("Volunteer is already assigned to this shift")

    res = db.execute(
        update(Shift)
        .where(Shift.id == shift_id, Shift.participant_id.is_(None))
        .values(participant_id=volunteer_id)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise Conflict("Shift is already assigned")

    db.expire(shift)
    if commit:
        db.commit()
    log.info("assigned volunteer=%s shift=%s", volunteer_id, shift_id)
    return shift


def unassign(db: Session, *, volunteer_id: int, shift_id: int, commit: bool = True) -> Shift:
    get_volunteer(db, volunteer_id)
    shift = get_shift(db, shift_id)

    res = db.execute(
        update(Shift)
        .where(Shift.id == shift_id, Shift.participant_id == volunteer_id)
        .values(participant_id=None)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise AssignmentMismatch("Volunteer is not assigned to this shift")

    db.expire(shift)
    if commit:
        db.commit()
    log.info("unassigned volunteer=%s shift=%s", volunteer_id, shift_id)
    return shift


def swap(db: Session, *, volunteer_id: int, current_shift_id: int, new_shift_id: int) -> Shift:
    """Move a volunteer to a sibling shift on the same performance.

    Both steps run in one transaction. If the volunteer can't be placed on the new shift
    the whole transaction is rolled back (they stay on the current shift) and ``SwapFailed``
    is raised. The half-done state is never committed.
    """
    if current_shift_id == new_shift_id:
        raise ValidationFailed("New shift must differ from the current shift")

    get_volunteer(db, volunteer_id)
    current = get_shift(db, current_shift_id)
    new = get_shift(db, new_shift_id)
    if current.show_date_id != new.show_date_id:
        raise ValidationFailed("Shifts must be for the same performance")

    try:
        unassign(db, volunteer_id=volunteer_id, shift_id=current_shift_id, commit=False)
    except DomainError:
        db.rollback()
        raise

    try:
        shift = assign(db, volunteer_id=volunteer_id, shift_id=new_shift_id, commit=False)
    except DomainError as e:
        db.rollback()
        log.warning(
            "swap rolled back volunteer=%s from=%s to=%s: %s",
            volunteer_id, current_shift_id, new_shift_id, e.message,
        )
        raise SwapFailed(f"Swap failed, volunteer kept on original shift: {e.message}")

    db.commit()
    log.info("swapped volunteer=%s from=%s to=%s", volunteer_id, current_shift_id, new_shift_id)
    return shift


def list_available_volunteers(db: Session, shift_id: int) -> list[Participant]:
    """Approved volunteers not holding any shift on the same performance."""
    shift = get_shift(db, shift_id)

    busy = select(Shift.participant_id).where(
        Shift.show_date_id == shift.show_date_id,
        Shift.participant_id.is_not(None),
    )
    return list(
        db.execute(
            select(Participant)
            .where(Participant.approved.is_(True), Participant.id.not_in(busy))
            .order_by(Participant.name.asc(), Participant.id.asc())
        ).scalars().all()
    )


def list_available_roles(db: Session, shift_id: int) -> list[Shift]:
    """Unassigned sibling shifts on the same performance, for a swap."""
    shift = get_shift(db, shift_id)
    return list(
        db.execute(
            select(Shift)
            .where(
                Shift.show_date_id == shift.show_date_id,
                Shift.participant_id.is_(None),
                Shift.id != shift.id,
            )
            .order_by(Shift.role.asc(), Shift.id.asc())
        ).scalars().all()
    )


def sign_up(db: Session, *, volunteer_id: int, shift_ids: list[int]) -> list[Shift]:
    """Volunteer self-service: take several shifts at once, all or nothing.

    One shift per performance: a shift on a performance where the volunteer already
    holds one (or asks for two) is rejected.
    """
    volunteer = get_volunteer(db, volunteer_id)
    if not volunteer.approved:
        raise ValidationFailed("Volunteer is not approved yet")

    wanted = list(dict.fromkeys(shift_ids))
    if not wanted:
        raise ValidationFailed("No shifts selected")

    shifts = [get_shift(db, sid) for sid in wanted]

    held_dates = set(
        db.execute(
            select(Shift.show_date_id).where(Shift.participant_id == volunteer_id)
        ).scalars().all()
    )
    for sh in shifts:
        if sh.show_date_id in held_dates:
            raise Conflict("Already assigned to a shift for this performance")
        held_dates.add(sh.show_date_id)

    try:
        for sh in shifts:
            assign(db, volunteer_id=volunteer_id, shift_id=sh.id, commit=False)
    except DomainError:
        db.rollback()
        raise

    db.commit()
    return shifts


def set_approval(db: Session, *, volunteer_id: int, approved: bool, remove_shifts: bool = True) -> int:
    """Toggle approval; disabling can release every shift the volunteer holds.

    Returns the number of shifts released.
    """
    volunteer = get_volunteer(db, volunteer_id)
    volunteer.approved = approved

    released = 0
    if not approved and remove_shifts:
        res = db.execute(
            update(Shift)
            .where(Shift.participant_id == volunteer_id)
            .values(participant_id=None)
            .execution_options(synchronize_session=False)
        )
        released = res.rowcount or 0

    db.commit()
    log.info("volunteer=%s approved=%s released_shifts=%s", volunteer_id, approved, released)
    return released
