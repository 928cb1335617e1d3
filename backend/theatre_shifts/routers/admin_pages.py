from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from theatre_shifts.auth.deps import ADMIN_COOKIE, admin_token_ok, is_admin
from theatre_shifts.auth.jwt_tokens import create_admin_session_token, volunteer_login_url
from theatre_shifts.core.config import settings
from theatre_shifts.core.db import get_db
from theatre_shifts.core.errors import Unauthorized
from theatre_shifts.core.templating import templates
from theatre_shifts.services import assignments, email, shifts, shows, volunteers

router = APIRouter(prefix="/admin", tags=["admin-pages"], include_in_schema=False)


# ---------- Schemas ----------

class LoginIn(BaseModel):
    token: str = Field(..., min_length=1)


# ---------- Helpers ----------

def _login_redirect() -> RedirectResponse:
    return RedirectResponse(url="/admin/login", status_code=303)


def _render(request: Request, name: str, **context):
    return templates.TemplateResponse(request, name, {"request": request, **context})


# ---------- Session ----------

@router.get("/login")
def login_page(request: Request):
    if is_admin(request):
        return RedirectResponse(url="/admin", status_code=303)
    return _render(request, "admin/login.html")


@router.post("/login")
def login(payload: LoginIn, response: Response):
    if not admin_token_ok(payload.token):
        raise Unauthorized("Invalid admin token")
    response.set_cookie(
        key=ADMIN_COOKIE,
        value=create_admin_session_token(),
        max_age=settings.ADMIN_SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
        path="/",
    )
    return {"ok": True}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(key=ADMIN_COOKIE, httponly=True, samesite="lax", secure=settings.COOKIE_SECURE, path="/")
    return {"ok": True}


# ---------- Pages ----------

@router.get("")
def dashboard(request: Request, db: Session = Depends(get_db)):
    if not is_admin(request):
        return _login_redirect()
    return _render(request, "admin/dashboard.html", stats=shifts.stats(db), server_time=shifts.server_time())


@router.get("/shows")
def shows_page(request: Request, db: Session = Depends(get_db)):
    if not is_admin(request):
        return _login_redirect()
    return _render(request, "admin/shows.html", rows=shows.list_shows(db))


@router.get("/shows/{show_id}")
def show_detail_page(show_id: int, request: Request, db: Session = Depends(get_db)):
    if not is_admin(request):
        return _login_redirect()
    show = shows.get_show(db, show_id)
    dates = [
        {**row, "shifts": [shifts.shift_payload(sh) for sh in shifts.shifts_for_show_date(db, row["show_date"].id)]}
        for row in shows.list_show_dates(db, show_id)
    ]
    return _render(
        request,
        "admin/show_detail.html",
        show=show,
        dates=dates,
        intervals=shows.list_intervals(db, show_id),
        default_roles=shifts.DEFAULT_ROLES,
        show_volunteers=volunteers.show_volunteers(db, show_id),
    )


@router.get("/volunteers")
def volunteers_page(request: Request, db: Session = Depends(get_db)):
    if not is_admin(request):
        return _login_redirect()
    return _render(request, "admin/volunteers.html", rows=volunteers.list_volunteers(db))


@router.get("/volunteers/{volunteer_id}")
def volunteer_detail_page(volunteer_id: int, request: Request, db: Session = Depends(get_db)):
    if not is_admin(request):
        return _login_redirect()
    volunteer = assignments.get_volunteer(db, volunteer_id)
    return _render(
        request,
        "admin/volunteer_detail.html",
        volunteer=volunteer,
        login_url=volunteer_login_url(volunteer.id),
        assigned=shifts.group_by_show(volunteers.volunteer_shifts(db, volunteer_id)),
        available=shifts.group_by_show(volunteers.available_shifts(db, volunteer_id)),
        emails=email.list_sent_emails(db, volunteer_id),
    )


@router.get("/unfilled")
def unfilled_page(request: Request, db: Session = Depends(get_db)):
    if not is_admin(request):
        return _login_redirect()
    return _render(
        request,
        "admin/unfilled.html",
        groups=shifts.group_by_show(shifts.list_unfilled(db)),
        recipients=volunteers.list_volunteers(db, approved=True),
    )


@router.get("/emails/{email_id}")
def sent_email_page(email_id: int, request: Request, db: Session = Depends(get_db)):
    """The stored body exactly as it went out."""
    if not is_admin(request):
        return _login_redirect()
    return HTMLResponse(email.get_sent_email(db, email_id).html_content)
