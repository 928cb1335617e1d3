from urllib.parse import unquote

import pytest

from theatre_shifts.core.config import settings
from theatre_shifts.models import SentEmail
from theatre_shifts.services import email


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0434586878", "+61434586878"),
        ("0434 586 878", "+61434586878"),
        ("+61 434 586 878", "+61434586878"),
        ("61434586878", "+61434586878"),
        ("0061 434 586 878", "+61434586878"),
        ("", ""),
    ],
)
def test_phone_to_international(raw, expected):
    assert email.phone_to_international(raw) == expected


def test_tel_link():
    assert email.tel_link("0434 586 878") == "tel:+61434586878"


def test_vcard_data_uri():
    contact = email.ContactInfo(name="Jo Bloggs", phone="0434 586 878", organization="Stage, Door; Co")
    uri = email.vcard_data_uri(contact)
    assert uri.startswith("data:text/vcard;charset=utf-8,")

    card = unquote(uri.split(",", 1)[1])
    assert "BEGIN:VCARD" in card and "VERSION:3.0" in card
    assert "FN:Jo Bloggs" in card
    assert "ORG:Stage\\, Door\\; Co" in card
    assert "TEL;TYPE=CELL:+61434586878" in card


def test_login_email_escapes_name_and_links_phone():
    html = email.render_login_email(
        email.LoginEmailData(volunteer_name="<b>Eve</b> & co", login_url="https://example.test/volunteer/s/abc")
    )
    assert "&lt;b&gt;Eve&lt;/b&gt; &amp; co" in html
    assert "<b>Eve</b>" not in html
    assert "https://example.test/volunteer/s/abc" in html
    assert 'href="tel:+61434586878"' in html
    assert "data:text/vcard" in html


def test_schedule_email_lists_shifts_and_escapes_show_names():
    html = email.render_schedule_email(
        email.ScheduleEmailData(
            volunteer_name="Eve",
            login_url="https://example.test/volunteer/s/abc",
            shifts=[
                {"show_name": "Romeo <&> Juliet", "date": "Friday 18 Oct 2024", "time": "6:00pm - 10:00pm", "role": "Box Office"},
                {"show_name": "Romeo <&> Juliet", "date": "Saturday 19 Oct 2024", "time": "11:00pm - 1:00am +1 day", "role": "Usher"},
            ],
        )
    )
    assert "Romeo &lt;&amp;&gt; Juliet" in html
    assert html.count("Romeo &lt;&amp;&gt; Juliet") == 1
    assert "Friday 18 Oct 2024" in html
    assert "11:00pm - 1:00am +1 day" in html


def test_schedule_email_without_shifts():
    html = email.render_schedule_email(email.ScheduleEmailData(volunteer_name="Eve", login_url="https://x.test"))
    assert "no upcoming shifts" in html


def test_send_is_simulated_without_api_key(db):
    result = email.send_email(db, to="eve@example.com", subject="Hi", html="<p>Hi</p>", email_type="test")
    assert result == email.EmailResult(sent=True, simulated=True, provider_id=None)

    row = db.query(SentEmail).one()
    assert row.delivery_status == "simulated"
    assert row.to_email == "eve@example.com"


def test_real_send_records_provider_id(db, monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(email, "_post_resend", lambda to, subject, html: "msg_123")

    result = email.send_email(db, to="eve@example.com", subject="Hi", html="<p>Hi</p>", email_type="test")
    assert result.sent and not result.simulated
    assert db.query(SentEmail).one().provider_email_id == "msg_123"


def test_failed_send_is_reported_not_raised(db, monkeypatch):
    def boom(to, subject, html):
        raise OSError("network down")

    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(email, "_post_resend", boom)

    result = email.send_email(db, to="eve@example.com", subject="Hi", html="<p>Hi</p>", email_type="test")
    assert result.sent is False
    assert db.query(SentEmail).one().delivery_status == "failed"


def test_admin_send_endpoints_record_history(client, admin_headers, factory, db):
    sd = factory.show_date(factory.show("Our Town"))
    v = factory.volunteer("Emily")
    factory.shift(sd, role="Box Office", participant=v)

    res = client.post(f"/admin/api/volunteers/{v.id}/send-login-link", headers=admin_headers)
    assert res.json() == {"sent": True, "simulated": True}
    res = client.post(f"/admin/api/volunteers/{v.id}/send-schedule", headers=admin_headers)
    assert res.json() == {"sent": True, "simulated": True}

    history = client.get(f"/admin/api/volunteers/{v.id}/emails", headers=admin_headers).json()
    assert sorted(h["email_type"] for h in history) == ["login_link", "schedule"]

    db.expire_all()
    schedule = db.query(SentEmail).filter(SentEmail.email_type == "schedule").one()
    assert "Our Town" in schedule.html_content
    assert "Box Office" in schedule.html_content


def test_unfilled_shifts_email_offers_only_open_performances(client, admin_headers, factory, db):
    show = factory.show("Annie")
    held = factory.show_date(show, days_ahead=2)
    open_ = factory.show_date(show, days_ahead=3)
    v = factory.volunteer("Molly")
    factory.shift(held, role="Box Office", participant=v)
    factory.shift(held, role="Raffle Ticket Selling")
    factory.shift(open_, role="FOH 2IC")

    res = client.post(f"/admin/api/volunteers/{v.id}/send-unfilled-shifts", headers=admin_headers)
    assert res.json() == {"sent": True, "simulated": True, "shift_count": 1}

    db.expire_all()
    row = db.query(SentEmail).one()
    assert row.email_type == "unfilled_shifts"
    assert "FOH 2IC" in row.html_content
    assert "Raffle Ticket Selling" not in row.html_content


def test_bulk_unfilled_reports_each_volunteer(client, admin_headers, factory, db):
    factory.shift(factory.show_date(factory.show("Annie")), role="FOH 2IC")
    keen = factory.volunteer("Keen")
    pending = factory.volunteer("Pending", approved=False)

    res = client.post(
        "/admin/api/emails/unfilled-shifts",
        json={"volunteerIds": [keen.id, pending.id, 9999]},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["sent"] == 1
    assert body["failed"] == 1

    by_id = {r["volunteer_id"]: r for r in body["results"]}
    assert by_id[keen.id]["ok"] and by_id[keen.id]["shift_count"] == 1
    assert by_id[pending.id]["ok"] and not by_id[pending.id]["sent"]
    assert by_id[9999] == {"volunteer_id": 9999, "ok": False, "error": "Volunteer not found"}

    db.expire_all()
    assert [r.to_email for r in db.query(SentEmail).all()] == ["keen@example.com"]


def test_show_week_emails_for_selected_volunteers(client, admin_headers, factory, db):
    pippin = factory.show("Pippin")
    other = factory.show("Godspell")
    sd = factory.show_date(pippin, days_ahead=4)
    elsewhere = factory.show_date(other, days_ahead=4)
    a = factory.volunteer("Alice")
    b = factory.volunteer("Bob")
    c = factory.volunteer("Cara")
    factory.shift(sd, role="Box Office", participant=a)
    factory.shift(sd, role="FOH Manager", participant=b)
    factory.shift(elsewhere, role="Box Office", participant=c)

    listed = client.get(f"/admin/api/shows/{pippin.id}/volunteers", headers=admin_headers).json()
    assert [(r["name"], r["shift_count"]) for r in listed] == [("Alice", 1), ("Bob", 1)]

    res = client.post(
        f"/admin/api/shows/{pippin.id}/send-show-week",
        json={"volunteer_ids": [a.id, b.id, c.id]},
        headers=admin_headers,
    )
    body = res.json()
    assert body["sent"] == 2
    assert body["failed"] == 1
    assert body["results"][2]["error"] == "No upcoming shifts for this show"

    db.expire_all()
    rows = db.query(SentEmail).order_by(SentEmail.id).all()
    assert [r.email_type for r in rows] == ["show_week", "show_week"]
    assert rows[0].subject == "Show week: Pippin"
    assert "Godspell" not in rows[0].html_content


def test_show_week_needs_a_known_show_and_volunteers(client, admin_headers, factory):
    res = client.post("/admin/api/shows/9999/send-show-week", json={"volunteerIds": [1]}, headers=admin_headers)
    assert res.status_code == 404

    show = factory.show("Pippin")
    res = client.post(f"/admin/api/shows/{show.id}/send-show-week", json={"volunteerIds": []}, headers=admin_headers)
    assert res.status_code == 400


def test_stored_email_can_be_viewed(client, admin_headers, factory):
    v = factory.volunteer("Emily")
    client.post(f"/admin/api/volunteers/{v.id}/send-login-link", headers=admin_headers)
    email_id = client.get(f"/admin/api/volunteers/{v.id}/emails", headers=admin_headers).json()[0]["id"]

    res = client.get(f"/admin/api/emails/{email_id}", headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["to_participant_id"] == v.id
    assert "Emily" in body["html_content"]

    page = client.get(f"/admin/emails/{email_id}", headers=admin_headers)
    assert page.headers["content-type"].startswith("text/html")
    assert page.text == body["html_content"]

    assert client.get("/admin/emails/1", follow_redirects=False).status_code == 303

    missing = client.get("/admin/api/emails/9999", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Email not found"}
