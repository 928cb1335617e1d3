"""Volunteer emails: rendering (pure) and delivery through Resend.

Rendering never touches the network. ``send_email`` is best-effort: without
``RESEND_API_KEY`` it only logs ("simulated"), and a provider failure is logged and
reported in the result instead of raised. Every attempt lands in ``sent_emails``.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from theatre_shifts.auth.jwt_tokens import volunteer_login_url
from theatre_shifts.core.config import settings
from theatre_shifts.core.errors import NotFound
from theatre_shifts.core.templating import templates
from theatre_shifts.core.timezone import format_long_date, format_shift_time_range
from theatre_shifts.models import Participant, SentEmail, Shift, Show
from theatre_shifts.services import volunteers

log = logging.getLogger("theatre_shifts.email")

RESEND_API_URL = "https://api.resend.com/emails"

EMAIL_TYPE_LOGIN = "login_link"
EMAIL_TYPE_SCHEDULE = "schedule"
EMAIL_TYPE_SHOW_WEEK = "show_week"
EMAIL_TYPE_UNFILLED = "unfilled_shifts"

# unfilled shifts offered per email
UNFILLED_EMAIL_LIMIT = 10


@dataclass(frozen=True)
class ContactInfo:
    name: str
    phone: str
    organization: str

    @property
    def display_phone(self) -> str:
        return self.phone

    @property
    def international_phone(self) -> str:
        return phone_to_international(self.phone)


def theatre_contact_info() -> ContactInfo:
    return ContactInfo(
        name=settings.CONTACT_NAME,
        phone=settings.CONTACT_PHONE,
        organization=settings.CONTACT_ORGANIZATION,
    )


def phone_to_international(phone: str | None, country_code: str | None = None) -> str:
    """'0434 586 878' -> '+61434586878'. Numbers already in +CC form keep their code."""
    raw = (phone or "").strip()
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return ""
    cc = country_code or settings.PHONE_COUNTRY_CODE

    if raw.startswith("+"):
        return "+" + digits
    if digits.startswith("00"):
        return "+" + digits[2:]
    if digits.startswith("0"):
        return f"+{cc}{digits[1:]}"
    if digits.startswith(cc) and len(digits) > 10:
        return "+" + digits
    return f"+{cc}{digits}"


def tel_link(phone: str | None) -> str:
    return f"tel:{phone_to_international(phone)}"


def _vcard_escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(",", "\\,")
        .replace(";", "\\;")
        .replace("\n", "\\n")
    )


def vcard(contact: ContactInfo) -> str:
    lines = [
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"FN:{_vcard_escape(contact.name)}",
        f"N:{_vcard_escape(contact.name)};;;;",
        f"ORG:{_vcard_escape(contact.organization)}",
        f"TEL;TYPE=CELL:{contact.international_phone}",
        "END:VCARD",
    ]
    return "\r\n".join(lines) + "\r\n"


def vcard_data_uri(contact: ContactInfo) -> str:
    return "data:text/vcard;charset=utf-8," + urllib.parse.quote(vcard(contact))


# ---------- Rendering ----------

@dataclass
class LoginEmailData:
    volunteer_name: str
    login_url: str
    contact: ContactInfo = field(default_factory=theatre_contact_info)


@dataclass
class ScheduleEmailData:
    volunteer_name: str
    login_url: str
    # rows from schedule_rows()
    shifts: list[dict] = field(default_factory=list)
    contact: ContactInfo = field(default_factory=theatre_contact_info)


def schedule_rows(shifts: Iterable[Shift]) -> list[dict]:
    return [
        {
            "show_name": sh.show_date.show.name,
            "date": format_long_date(sh.show_date.start_time),
            "time": format_shift_time_range(sh.arrive_time, sh.depart_time, hour12=True),
            "role": sh.role,
        }
        for sh in shifts
    ]


def _contact_context(contact: ContactInfo) -> dict:
    return {
        "contact": contact,
        "tel_link": tel_link(contact.phone),
        "vcard_uri": vcard_data_uri(contact),
    }


def render_login_email(data: LoginEmailData) -> str:
    return templates.env.get_template("email/login.html").render(
        volunteer_name=data.volunteer_name,
        login_url=data.login_url,
        **_contact_context(data.contact),
    )


def render_schedule_email(data: ScheduleEmailData) -> str:
    by_show: dict[str, list[dict]] = {}
    for row in data.shifts:
        by_show.setdefault(row["show_name"], []).append(row)
    return templates.env.get_template("email/schedule.html").render(
        volunteer_name=data.volunteer_name,
        login_url=data.login_url,
        shows=by_show,
        **_contact_context(data.contact),
    )


def render_unfilled_email(data: ScheduleEmailData) -> str:
    return templates.env.get_template("email/unfilled.html").render(
        volunteer_name=data.volunteer_name,
        login_url=data.login_url,
        shifts=data.shifts,
        **_contact_context(data.contact),
    )


# ---------- Delivery ----------

@dataclass(frozen=True)
class EmailResult:
    sent: bool
    simulated: bool
    provider_id: Optional[str] = None


def _from_header() -> str:
    return f"{settings.FROM_NAME} <{settings.FROM_EMAIL}>"


def _post_resend(to: str, subject: str, html: str) -> Optional[str]:
    payload = json.dumps(
        {"from": _from_header(), "to": [to], "subject": subject, "html": html},
        ensure_ascii=False,
    ).encode("utf-8")
    req = urllib.request.Request(
        RESEND_API_URL,
        data=payload,
        method="POST",
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.RESEND_API_KEY}",
        },
    )
    with urllib.request.urlopen(req, timeout=10) as resp:
        body = resp.read().decode("utf-8", errors="ignore")
        js = json.loads(body) if body else {}
        return js.get("id")


def send_email(
    db: Session,
    *,
    to: str,
    subject: str,
    html: str,
    email_type: str,
    participant_id: int | None = None,
) -> EmailResult:
    if settings.email_simulated():
        log.info("email simulated (no RESEND_API_KEY) to=%s type=%s subject=%r", to, email_type, subject)
        result = EmailResult(sent=True, simulated=True)
        status = "simulated"
    else:
        try:
            provider_id = _post_resend(to, subject, html)
            result = EmailResult(sent=True, simulated=False, provider_id=provider_id)
            status = "sent"
            log.info("email sent to=%s type=%s id=%s", to, email_type, provider_id)
        except Exception as e:
            log.exception("email send failed to=%s type=%s: %s", to, email_type, e)
            result = EmailResult(sent=False, simulated=False)
            status = "failed"

    db.add(
        SentEmail(
            to_email=to,
            to_participant_id=participant_id,
            from_email=settings.FROM_EMAIL,
            subject=subject,
            email_type=email_type,
            html_content=html,
            provider_email_id=result.provider_id,
            delivery_status=status,
        )
    )
    db.commit()
    return result


def send_login_link(db: Session, volunteer: Participant) -> EmailResult:
    html = render_login_email(
        LoginEmailData(volunteer_name=volunteer.name, login_url=volunteer_login_url(volunteer.id))
    )
    return send_email(
        db,
        to=volunteer.email,
        subject="Your volunteer shifts link",
        html=html,
        email_type=EMAIL_TYPE_LOGIN,
        participant_id=volunteer.id,
    )


def send_schedule(db: Session, volunteer: Participant, shifts: list[Shift]) -> EmailResult:
    html = render_schedule_email(
        ScheduleEmailData(
            volunteer_name=volunteer.name,
            login_url=volunteer_login_url(volunteer.id),
            shifts=schedule_rows(shifts),
        )
    )
    return send_email(
        db,
        to=volunteer.email,
        subject="Your upcoming volunteer shifts",
        html=html,
        email_type=EMAIL_TYPE_SCHEDULE,
        participant_id=volunteer.id,
    )


def list_sent_emails(db: Session, volunteer_id: int) -> list[SentEmail]:
    return list(
        db.execute(
            select(SentEmail)
            .where(SentEmail.to_participant_id == volunteer_id)
            .order_by(SentEmail.sent_at.desc(), SentEmail.id.desc())
        ).scalars().all()
    )


def get_sent_email(db: Session, email_id: int) -> SentEmail:
    sent = db.get(SentEmail, email_id)
    if sent is None:
        raise NotFound("Email not found")
    return sent


# ---------- Show week and unfilled shifts ----------

def send_show_week(db: Session, volunteer: Participant, show: Show, shifts: list[Shift]) -> EmailResult:
    html = render_schedule_email(
        ScheduleEmailData(
            volunteer_name=volunteer.name,
            login_url=volunteer_login_url(volunteer.id),
            shifts=schedule_rows(shifts),
        )
    )
    return send_email(
        db,
        to=volunteer.email,
        subject=f"Show week: {show.name}",
        html=html,
        email_type=EMAIL_TYPE_SHOW_WEEK,
        participant_id=volunteer.id,
    )


def send_unfilled_shifts(db: Session, volunteer: Participant, shifts: list[Shift]) -> EmailResult:
    html = render_unfilled_email(
        ScheduleEmailData(
            volunteer_name=volunteer.name,
            login_url=volunteer_login_url(volunteer.id),
            shifts=schedule_rows(shifts),
        )
    )
    return send_email(
        db,
        to=volunteer.email,
        subject="Last minute shifts: can you help?",
        html=html,
        email_type=EMAIL_TYPE_UNFILLED,
        participant_id=volunteer.id,
    )


def _bulk_result(volunteer_id: int, volunteer: Participant | None = None, **extra) -> dict:
    row = {"volunteer_id": volunteer_id}
    if volunteer is not None:
        row.update(volunteer_name=volunteer.name, volunteer_email=volunteer.email)
    row.update(extra)
    return row


def _summary(results: list[dict]) -> dict:
    return {
        "sent": sum(1 for r in results if r.get("sent")),
        "failed": sum(1 for r in results if not r["ok"]),
        "results": results,
    }


def send_bulk_show_week(db: Session, show: Show, volunteer_ids: list[int]) -> dict:
    """Send each selected volunteer their upcoming shifts for one show.

    Per-volunteer failures are reported in ``results``; the batch never stops early.
    """
    results: list[dict] = []
    for vid in volunteer_ids:
        volunteer = db.get(Participant, vid)
        if volunteer is None:
            results.append(_bulk_result(vid, ok=False, error="Volunteer not found"))
            continue
        shifts = volunteers.show_shifts(db, vid, show.id)
        if not shifts:
            results.append(_bulk_result(vid, volunteer, ok=False, error="No upcoming shifts for this show"))
            continue
        r = send_show_week(db, volunteer, show, shifts)
        results.append(
            _bulk_result(
                vid, volunteer, ok=r.sent, sent=r.sent, simulated=r.simulated, shift_count=len(shifts),
                **({} if r.sent else {"error": "Failed to send email"}),
            )
        )

    summary = _summary(results)
    log.info("show-week emails show=%s sent=%s failed=%s", show.id, summary["sent"], summary["failed"])
    return summary


def send_bulk_unfilled(db: Session, volunteer_ids: list[int]) -> dict:
    """Offer each selected volunteer the next unfilled shifts they could take.

    A volunteer with nothing to offer is skipped without counting as a failure.
    """
    results: list[dict] = []
    for vid in volunteer_ids:
        volunteer = db.get(Participant, vid)
        if volunteer is None:
            results.append(_bulk_result(vid, ok=False, error="Volunteer not found"))
            continue
        shifts = volunteers.available_shifts(db, vid)[:UNFILLED_EMAIL_LIMIT]
        if not shifts:
            results.append(_bulk_result(vid, volunteer, ok=True, sent=False, info="No available shifts"))
            continue
        r = send_unfilled_shifts(db, volunteer, shifts)
        results.append(
            _bulk_result(
                vid, volunteer, ok=r.sent, sent=r.sent, simulated=r.simulated, shift_count=len(shifts),
                **({} if r.sent else {"error": "Failed to send email"}),
            )
        )

    summary = _summary(results)
    log.info("unfilled-shift emails sent=%s failed=%s", summary["sent"], summary["failed"])
    return summary
