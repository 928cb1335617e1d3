from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from theatre_shifts.auth.deps import require_admin
from theatre_shifts.auth.jwt_tokens import volunteer_login_url
from theatre_shifts.core.db import get_db
from theatre_shifts.core.timezone import iso_local
from theatre_shifts.models import Participant, SentEmail, Show, ShowDate, ShowInterval
from theatre_shifts.services import assignments, email, shifts, shows, volunteers

router = APIRouter(prefix="/admin/api", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------- Schemas ----------

class PerformanceIn(BaseModel):
    start_time: str = Field(..., min_length=1)
    end_time: str = Field(..., min_length=1)


class ShowCreateIn(BaseModel):
    name: str = Field(default="", max_length=200)
    performances: List[PerformanceIn] = Field(default_factory=list)
    existing_show_id: Optional[int] = Field(default=None, gt=0)


class ShowUpdateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class ShowDateCreateIn(BaseModel):
    show_id: int = Field(..., gt=0)
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ShowDateUpdateIn(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class IntervalIn(BaseModel):
    start_minutes: int = Field(..., ge=0)
    duration_minutes: int = Field(..., gt=0)


class VolunteerCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    phone: Optional[str] = Field(default=None, max_length=50)
    approved: bool = True


class VolunteerUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, min_length=3, max_length=320)
    phone: Optional[str] = Field(default=None, max_length=50)


class ApprovalIn(BaseModel):
    approved: bool
    remove_shifts: bool = True


class ShiftCreateIn(BaseModel):
    show_date_ids: List[int] = Field(..., min_length=1)
    roles: List[str] = Field(..., min_length=1)
    arrive_time: str = Field(..., description="HH:MM")
    depart_time: str = Field(..., description="HH:MM")


class ShiftUpdateIn(BaseModel):
    role: Optional[str] = Field(default=None, max_length=100)
    arrive_time: Optional[str] = None
    depart_time: Optional[str] = None


class VolunteerShiftIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    volunteer_id: int = Field(..., alias="volunteerId", gt=0)
    shift_id: int = Field(..., alias="shiftId", gt=0)


class SwapIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_shift_id: int = Field(..., alias="newShiftId", gt=0)


class BulkEmailIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    volunteer_ids: List[int] = Field(..., alias="volunteerIds", min_length=1)


# ---------- Helpers ----------

def show_payload(show: Show, **extra) -> dict:
    return {"id": show.id, "name": show.name, **extra}


def show_date_payload(sd: ShowDate, **extra) -> dict:
    return {
        "id": sd.id,
        "show_id": sd.show_id,
        "start_time": iso_local(sd.start_time),
        "end_time": iso_local(sd.end_time),
        **extra,
    }


def interval_payload(it: ShowInterval) -> dict:
    return {
        "id": it.id,
        "show_id": it.show_id,
        "start_minutes": it.start_minutes,
        "duration_minutes": it.duration_minutes,
    }


def volunteer_payload(p: Participant, **extra) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "email": p.email,
        "phone": p.phone,
        "approved": bool(p.approved),
        "created_at": iso_local(p.created_at),
        **extra,
    }


def sent_email_payload(e: SentEmail) -> dict:
    return {
        "id": e.id,
        "to_email": e.to_email,
        "subject": e.subject,
        "email_type": e.email_type,
        "delivery_status": e.delivery_status,
        "provider_email_id": e.provider_email_id,
        "sent_at": iso_local(e.sent_at),
    }


def sent_email_detail(e: SentEmail) -> dict:
    return {
        **sent_email_payload(e),
        "from_email": e.from_email,
        "to_participant_id": e.to_participant_id,
        "html_content": e.html_content,
    }


def _email_response(result: email.EmailResult) -> dict:
    return {"sent": result.sent, "simulated": result.simulated}


# ---------- Shows ----------

@router.get("/shows")
def list_shows(db: Session = Depends(get_db)):
    return [
        show_payload(
            r["show"],
            date_count=r["date_count"],
            first_date=iso_local(r["first_date"]),
            last_date=iso_local(r["last_date"]),
        )
        for r in shows.list_shows(db)
    ]


@router.post("/shows", status_code=201)
def create_show(payload: ShowCreateIn, db: Session = Depends(get_db)):
    show, results = shows.create_show(
        db,
        name=payload.name,
        performances=[(p.start_time, p.end_time) for p in payload.performances],
        existing_show_id=payload.existing_show_id,
    )
    return {
        "show": show_payload(show),
        "results": [{**r, "start_time": iso_local(r["start_time"])} for r in results],
    }


@router.get("/shows/{show_id}")
def get_show(show_id: int, db: Session = Depends(get_db)):
    show = shows.get_show(db, show_id)
    return show_payload(
        show,
        dates=[show_date_payload(sd) for sd in show.dates],
        intervals=[interval_payload(it) for it in show.intervals],
    )


@router.put("/shows/{show_id}")
def update_show(show_id: int, payload: ShowUpdateIn, db: Session = Depends(get_db)):
    return show_payload(shows.update_show(db, show_id, name=payload.name))


@router.delete("/shows/{show_id}")
def delete_show(show_id: int, db: Session = Depends(get_db)):
    shows.delete_show(db, show_id)
    return {"ok": True}


# ---------- Show week emails ----------

@router.get("/shows/{show_id}/volunteers")
def list_show_volunteers(show_id: int, db: Session = Depends(get_db)):
    shows.get_show(db, show_id)
    return [
        volunteer_payload(
            r["volunteer"],
            shift_count=r["shift_count"],
            next_performance=iso_local(r["next_performance"].start_time),
        )
        for r in volunteers.show_volunteers(db, show_id)
    ]


@router.post("/shows/{show_id}/send-show-week")
def send_show_week(show_id: int, payload: BulkEmailIn, db: Session = Depends(get_db)):
    show = shows.get_show(db, show_id)
    return email.send_bulk_show_week(db, show, payload.volunteer_ids)


# ---------- Show dates ----------

@router.get("/shows/{show_id}/dates")
def list_show_dates(show_id: int, db: Session = Depends(get_db)):
    return [
        show_date_payload(r["show_date"], total_shifts=r["total_shifts"], filled_shifts=r["filled_shifts"])
        for r in shows.list_show_dates(db, show_id)
    ]


@router.post("/show-dates", status_code=201)
def create_show_date(payload: ShowDateCreateIn, db: Session = Depends(get_db)):
    sd = shows.create_show_date(db, show_id=payload.show_id, start_time=payload.start_time, end_time=payload.end_time)
    return show_date_payload(sd)


@router.put("/show-dates/{show_date_id}")
def update_show_date(show_date_id: int, payload: ShowDateUpdateIn, db: Session = Depends(get_db)):
    sd = shows.update_show_date(db, show_date_id, start_time=payload.start_time, end_time=payload.end_time)
    return show_date_payload(sd)


@router.delete("/show-dates/{show_date_id}")
def delete_show_date(show_date_id: int, db: Session = Depends(get_db)):
    shows.delete_show_date(db, show_date_id)
    return {"ok": True}


# ---------- Intervals ----------

@router.get("/shows/{show_id}/intervals")
def list_intervals(show_id: int, db: Session = Depends(get_db)):
    return [interval_payload(it) for it in shows.list_intervals(db, show_id)]


@router.post("/shows/{show_id}/intervals", status_code=201)
def create_interval(show_id: int, payload: IntervalIn, db: Session = Depends(get_db)):
    it = shows.create_interval(
        db, show_id=show_id, start_minutes=payload.start_minutes, duration_minutes=payload.duration_minutes
    )
    return interval_payload(it)


@router.put("/show-intervals/{interval_id}")
def update_interval(interval_id: int, payload: IntervalIn, db: Session = Depends(get_db)):
    it = shows.update_interval(
        db, interval_id, start_minutes=payload.start_minutes, duration_minutes=payload.duration_minutes
    )
    return interval_payload(it)


@router.delete("/show-intervals/{interval_id}")
def delete_interval(interval_id: int, db: Session = Depends(get_db)):
    shows.delete_interval(db, interval_id)
    return {"ok": True}


# ---------- Volunteers ----------

@router.get("/volunteers")
def list_volunteers(approved: Optional[bool] = Query(default=None), db: Session = Depends(get_db)):
    return [
        volunteer_payload(r["volunteer"], shift_count=r["shift_count"])
        for r in volunteers.list_volunteers(db, approved=approved)
    ]


@router.post("/volunteers", status_code=201)
def create_volunteer(payload: VolunteerCreateIn, db: Session = Depends(get_db)):
    p = volunteers.create_volunteer(
        db, name=payload.name, email=payload.email, phone=payload.phone, approved=payload.approved
    )
    return volunteer_payload(p, login_url=volunteer_login_url(p.id))


@router.get("/volunteers/{volunteer_id}")
def get_volunteer(volunteer_id: int, db: Session = Depends(get_db)):
    p = assignments.get_volunteer(db, volunteer_id)
    return volunteer_payload(p, login_url=volunteer_login_url(p.id))


@router.put("/volunteers/{volunteer_id}")
def update_volunteer(volunteer_id: int, payload: VolunteerUpdateIn, db: Session = Depends(get_db)):
    p = volunteers.update_volunteer(
        db, volunteer_id, name=payload.name, email=payload.email, phone=payload.phone
    )
    return volunteer_payload(p)


@router.delete("/volunteers/{volunteer_id}")
def delete_volunteer(volunteer_id: int, db: Session = Depends(get_db)):
    volunteers.delete_volunteer(db, volunteer_id)
    return {"ok": True}


@router.put("/volunteers/{volunteer_id}/approval")
def set_approval(volunteer_id: int, payload: ApprovalIn, db: Session = Depends(get_db)):
    released = assignments.set_approval(
        db, volunteer_id=volunteer_id, approved=payload.approved, remove_shifts=payload.remove_shifts
    )
    return {"ok": True, "approved": payload.approved, "removed_shifts": released}


@router.get("/volunteers/{volunteer_id}/shifts")
def list_volunteer_shifts(volunteer_id: int, db: Session = Depends(get_db)):
    return shifts.group_by_show(volunteers.volunteer_shifts(db, volunteer_id))


@router.get("/volunteers/{volunteer_id}/shifts/upcoming")
def list_volunteer_upcoming(volunteer_id: int, db: Session = Depends(get_db)):
    return [shifts.shift_payload(sh) for sh in volunteers.upcoming_shifts(db, volunteer_id)]


@router.get("/volunteers/{volunteer_id}/available-shifts")
def list_volunteer_available(volunteer_id: int, db: Session = Depends(get_db)):
    return shifts.group_by_show(volunteers.available_shifts(db, volunteer_id))


@router.get("/volunteers/{volunteer_id}/emails")
def list_volunteer_emails(volunteer_id: int, db: Session = Depends(get_db)):
    assignments.get_volunteer(db, volunteer_id)
    return [sent_email_payload(e) for e in email.list_sent_emails(db, volunteer_id)]


@router.post("/volunteers/{volunteer_id}/send-login-link")
def send_login_link(volunteer_id: int, db: Session = Depends(get_db)):
    p = assignments.get_volunteer(db, volunteer_id)
    return _email_response(email.send_login_link(db, p))


@router.post("/volunteers/{volunteer_id}/send-schedule")
def send_schedule(volunteer_id: int, db: Session = Depends(get_db)):
    p = assignments.get_volunteer(db, volunteer_id)
    return _email_response(email.send_schedule(db, p, volunteers.upcoming_shifts(db, volunteer_id)))


@router.post("/volunteers/{volunteer_id}/send-unfilled-shifts")
def send_unfilled_shifts(volunteer_id: int, db: Session = Depends(get_db)):
    p = assignments.get_volunteer(db, volunteer_id)
    offered = volunteers.available_shifts(db, volunteer_id)[:email.UNFILLED_EMAIL_LIMIT]
    return {**_email_response(email.send_unfilled_shifts(db, p, offered)), "shift_count": len(offered)}


# ---------- Emails ----------

@router.post("/emails/unfilled-shifts")
def send_bulk_unfilled(payload: BulkEmailIn, db: Session = Depends(get_db)):
    return email.send_bulk_unfilled(db, payload.volunteer_ids)


@router.get("/emails/{email_id}")
def get_sent_email(email_id: int, db: Session = Depends(get_db)):
    return sent_email_detail(email.get_sent_email(db, email_id))


# ---------- Shifts ----------

@router.get("/shifts")
def list_shifts(upcoming: bool = Query(default=False), db: Session = Depends(get_db)):
    return shifts.group_by_show(shifts.list_shifts(db, upcoming_only=upcoming))


@router.get("/shifts/default-roles")
def default_roles():
    return shifts.DEFAULT_ROLES


@router.get("/shifts/unfilled")
def list_unfilled(db: Session = Depends(get_db)):
    return shifts.group_by_show(shifts.list_unfilled(db))


@router.post("/shifts", status_code=201)
def create_shifts(payload: ShiftCreateIn, db: Session = Depends(get_db)):
    results = shifts.create_shifts(
        db,
        show_date_ids=payload.show_date_ids,
        roles=payload.roles,
        arrive_time=payload.arrive_time,
        depart_time=payload.depart_time,
    )
    return {"results": results, "created": sum(1 for r in results if r["ok"])}


@router.get("/shifts/{shift_id}")
def get_shift(shift_id: int, db: Session = Depends(get_db)):
    return shifts.shift_payload(assignments.get_shift(db, shift_id))


@router.put("/shifts/{shift_id}")
def update_shift(shift_id: int, payload: ShiftUpdateIn, db: Session = Depends(get_db)):
    sh = shifts.update_shift(
        db, shift_id, role=payload.role, arrive_time=payload.arrive_time, depart_time=payload.depart_time
    )
    return shifts.shift_payload(sh)


@router.delete("/shifts/{shift_id}")
def delete_shift(shift_id: int, db: Session = Depends(get_db)):
    shifts.delete_shift(db, shift_id)
    return {"ok": True}


@router.get("/shifts/{shift_id}/available-volunteers")
def available_volunteers(shift_id: int, db: Session = Depends(get_db)):
    return [volunteer_payload(p) for p in assignments.list_available_volunteers(db, shift_id)]


@router.get("/shifts/{shift_id}/available-roles")
def available_roles(shift_id: int, db: Session = Depends(get_db)):
    return [shifts.shift_payload(sh) for sh in assignments.list_available_roles(db, shift_id)]


# ---------- Assignments ----------

@router.post("/volunteer-shifts", status_code=201)
def assign_volunteer(payload: VolunteerShiftIn, db: Session = Depends(get_db)):
    sh = assignments.assign(db, volunteer_id=payload.volunteer_id, shift_id=payload.shift_id)
    return shifts.shift_payload(sh)


@router.delete("/volunteers/{volunteer_id}/shifts/{shift_id}")
def unassign_volunteer(volunteer_id: int, shift_id: int, db: Session = Depends(get_db)):
    assignments.unassign(db, volunteer_id=volunteer_id, shift_id=shift_id)
    return {"ok": True}


@router.post("/volunteers/{volunteer_id}/shifts/{shift_id}/swap")
def swap_shift(volunteer_id: int, shift_id: int, payload: SwapIn, db: Session = Depends(get_db)):
    sh = assignments.swap(
        db, volunteer_id=volunteer_id, current_shift_id=shift_id, new_shift_id=payload.new_shift_id
    )
    return shifts.shift_payload(sh)


# ---------- Dashboard ----------

@router.get("/stats")
def get_stats(db: Session = Depends(get_db)):
    return shifts.stats(db)


@router.get("/server-time")
def get_server_time():
    return shifts.server_time()
