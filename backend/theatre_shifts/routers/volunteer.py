from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from theatre_shifts.auth.deps import get_link_volunteer
from theatre_shifts.core.db import get_db
from theatre_shifts.core.errors import AssignmentMismatch
from theatre_shifts.core.templating import templates
from theatre_shifts.models import Participant
from theatre_shifts.services import assignments, email, shifts, volunteers

log = logging.getLogger("theatre_shifts.volunteer")

router = APIRouter(prefix="/volunteer", tags=["volunteer"])


# ---------- Schemas ----------

class SignUpIn(BaseModel):
    shift_ids: List[int] = Field(..., min_length=1)


class VolunteerSwapIn(BaseModel):
    old_shift_id: int = Field(..., gt=0)
    new_shift_id: int = Field(..., gt=0)


class SendLinkIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class RegisterIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    phone: str = Field(..., min_length=1, max_length=50)


# ---------- Helpers ----------

def _require_own_shift(db: Session, volunteer: Participant, shift_id: int) -> None:
    shift = assignments.get_shift(db, shift_id)
    if shift.participant_id != volunteer.id:
        raise AssignmentMismatch()


# ---------- Routes ----------

@router.get("/s/{token}")
def schedule_page(
    request: Request,
    token: str,
    volunteer: Participant = Depends(get_link_volunteer),
    db: Session = Depends(get_db),
):
    return templates.TemplateResponse(
        request,
        "volunteer/schedule.html",
        {
            "request": request,
            "token": token,
            "volunteer": volunteer,
            "assigned": shifts.group_by_show(volunteers.upcoming_shifts(db, volunteer.id)) if volunteer.approved else [],
            "available": shifts.group_by_show(volunteers.available_shifts(db, volunteer.id)),
        },
    )


@router.post("/s/{token}/shifts", status_code=201)
def sign_up(
    payload: SignUpIn,
    volunteer: Participant = Depends(get_link_volunteer),
    db: Session = Depends(get_db),
):
    taken = assignments.sign_up(db, volunteer_id=volunteer.id, shift_ids=payload.shift_ids)
    return {"ok": True, "shifts": [shifts.shift_payload(sh) for sh in taken]}


@router.delete("/s/{token}/shifts/{shift_id}")
def remove_shift(
    shift_id: int,
    volunteer: Participant = Depends(get_link_volunteer),
    db: Session = Depends(get_db),
):
    assignments.unassign(db, volunteer_id=volunteer.id, shift_id=shift_id)
    return {"ok": True}


@router.post("/s/{token}/swap")
def swap_shift(
    payload: VolunteerSwapIn,
    volunteer: Participant = Depends(get_link_volunteer),
    db: Session = Depends(get_db),
):
    sh = assignments.swap(
        db, volunteer_id=volunteer.id, current_shift_id=payload.old_shift_id, new_shift_id=payload.new_shift_id
    )
    return {"ok": True, "shift": shifts.shift_payload(sh)}


@router.get("/s/{token}/shifts/{shift_id}/available-roles")
def available_roles(
    shift_id: int,
    volunteer: Participant = Depends(get_link_volunteer),
    db: Session = Depends(get_db),
):
    _require_own_shift(db, volunteer, shift_id)
    return [shifts.shift_payload(sh) for sh in assignments.list_available_roles(db, shift_id)]


@router.post("/send-link")
def send_link(payload: SendLinkIn, db: Session = Depends(get_db)):
    volunteer = volunteers.find_approved_by_email(db, payload.email)
    result = email.send_login_link(db, volunteer)
    return {"sent": result.sent, "simulated": result.simulated}


@router.post("/register", status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    volunteer = volunteers.register_volunteer(db, name=payload.name, email=payload.email, phone=payload.phone)
    log.info("self-registered volunteer=%s awaiting approval", volunteer.id)
    return {"ok": True, "id": volunteer.id, "approved": False}
