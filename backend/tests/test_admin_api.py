from datetime import timedelta

from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import OperationalError

from theatre_shifts.core.timezone import now_utc, to_local_input
from theatre_shifts.models import Show
from theatre_shifts.services import shows


def _create_hamlet(client, headers):
    res = client.post(
        "/admin/api/shows",
        json={
            "name": "Hamlet",
            "performances": [{"start_time": "2024-10-18T19:00", "end_time": "2024-10-18T22:00"}],
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    body = res.json()
    return body["show"]["id"], body["results"][0]["show_date_id"]


def _create_volunteer(client, headers, name, email=None):
    res = client.post(
        "/admin/api/volunteers",
        json={"name": name, "email": email or f"{name.lower()}@example.com", "phone": "0400 000 000"},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["id"]


def test_requests_without_token_are_rejected_without_side_effects(client, admin_headers):
    res = client.post("/admin/api/shows", json={"name": "Macbeth"})
    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized"}

    res = client.post("/admin/api/shows", json={"name": "Macbeth"}, headers={"Authorization": "Bearer nope"})
    assert res.status_code == 401

    assert client.get("/admin/api/shows", headers=admin_headers).json() == []


def test_hamlet_scenario(client, admin_headers):
    show_id, show_date_id = _create_hamlet(client, admin_headers)

    res = client.post(
        "/admin/api/shifts",
        json={"show_date_ids": [show_date_id], "roles": ["Usher"], "arrive_time": "18:00", "depart_time": "22:00"},
        headers=admin_headers,
    )
    assert res.status_code == 201, res.text
    shift_id = res.json()["results"][0]["shift_id"]

    v7 = _create_volunteer(client, admin_headers, "Seven")
    v9 = _create_volunteer(client, admin_headers, "Nine")

    res = client.post("/admin/api/volunteer-shifts", json={"volunteerId": v7, "shiftId": shift_id}, headers=admin_headers)
    assert res.status_code == 201
    assert res.json()["participant"]["id"] == v7
    assert res.json()["time_label"] == "18:00 - 22:00"

    res = client.post("/admin/api/volunteer-shifts", json={"volunteerId": v9, "shiftId": shift_id}, headers=admin_headers)
    assert res.status_code == 409
    assert "error" in res.json()

    res = client.delete(f"/admin/api/volunteers/{v7}/shifts/{shift_id}", headers=admin_headers)
    assert res.status_code == 200

    res = client.post("/admin/api/volunteer-shifts", json={"volunteerId": v9, "shiftId": shift_id}, headers=admin_headers)
    assert res.status_code == 201
    assert client.get(f"/admin/api/shifts/{shift_id}", headers=admin_headers).json()["participant"]["id"] == v9


def test_unassign_mismatch_is_404(client, admin_headers):
    _, show_date_id = _create_hamlet(client, admin_headers)
    res = client.post(
        "/admin/api/shifts",
        json={"show_date_ids": [show_date_id], "roles": ["Usher"], "arrive_time": "18:00", "depart_time": "22:00"},
        headers=admin_headers,
    )
    shift_id = res.json()["results"][0]["shift_id"]
    v = _create_volunteer(client, admin_headers, "Loner")

    res = client.delete(f"/admin/api/volunteers/{v}/shifts/{shift_id}", headers=admin_headers)
    assert res.status_code == 404
    assert res.json() == {"error": "Volunteer is not assigned to this shift"}


def test_show_reuse_and_duplicate_performance(client, admin_headers):
    show_id, _ = _create_hamlet(client, admin_headers)
    res = client.post(
        "/admin/api/shows",
        json={
            "name": "Hamlet",
            "performances": [
                {"start_time": "2024-10-18T19:00", "end_time": "2024-10-18T22:00"},
                {"start_time": "2024-10-19T14:00", "end_time": "2024-10-19T17:00"},
            ],
        },
        headers=admin_headers,
    )
    assert res.status_code == 201
    body = res.json()
    assert body["show"]["id"] == show_id
    assert body["results"][0] == {"start_time": "2024-10-18T19:00:00+10:30", "ok": False, "error": "Performance already exists"}
    assert body["results"][1]["ok"] is True

    dates = client.get(f"/admin/api/shows/{show_id}/dates", headers=admin_headers).json()
    assert len(dates) == 2


def test_show_date_requires_times(client, admin_headers):
    show_id, _ = _create_hamlet(client, admin_headers)
    res = client.post("/admin/api/show-dates", json={"show_id": show_id}, headers=admin_headers)
    assert res.status_code == 400

    res = client.post(
        "/admin/api/show-dates",
        json={"show_id": show_id, "start_time": "2024-10-20T19:00", "end_time": "2024-10-20T18:00"},
        headers=admin_headers,
    )
    assert res.status_code == 400
    assert res.json() == {"error": "end_time must be after start_time"}


def test_overnight_shift_gets_next_day_label(client, admin_headers):
    _, show_date_id = _create_hamlet(client, admin_headers)
    res = client.post(
        "/admin/api/shifts",
        json={"show_date_ids": [show_date_id, 9999], "roles": ["Bump out"], "arrive_time": "23:00", "depart_time": "01:00"},
        headers=admin_headers,
    )
    results = res.json()["results"]
    assert results[0]["ok"] is True and results[0]["next_day"] is True
    assert results[1] == {"show_date_id": 9999, "role": "Bump out", "ok": False, "error": "Performance not found"}

    shift = client.get(f"/admin/api/shifts/{results[0]['shift_id']}", headers=admin_headers).json()
    assert shift["time_label"] == "23:00 - 01:00 +1 day"


def test_deleting_show_cascades(client, admin_headers):
    show_id, show_date_id = _create_hamlet(client, admin_headers)
    res = client.post(
        "/admin/api/shifts",
        json={"show_date_ids": [show_date_id], "roles": ["Usher", "Box Office"], "arrive_time": "18:00", "depart_time": "22:00"},
        headers=admin_headers,
    )
    shift_id = res.json()["results"][0]["shift_id"]
    v = _create_volunteer(client, admin_headers, "Casey")
    client.post("/admin/api/volunteer-shifts", json={"volunteerId": v, "shiftId": shift_id}, headers=admin_headers)
    client.post(
        f"/admin/api/shows/{show_id}/intervals",
        json={"start_minutes": 60, "duration_minutes": 20},
        headers=admin_headers,
    )

    assert len(client.get(f"/admin/api/volunteers/{v}/shifts", headers=admin_headers).json()) == 1

    assert client.delete(f"/admin/api/shows/{show_id}", headers=admin_headers).json() == {"ok": True}

    assert client.get(f"/admin/api/volunteers/{v}/shifts", headers=admin_headers).json() == []
    assert client.get(f"/admin/api/shows/{show_id}", headers=admin_headers).status_code == 404
    assert client.get(f"/admin/api/shifts/{shift_id}", headers=admin_headers).status_code == 404
    assert client.get("/admin/api/shifts", headers=admin_headers).json() == []


def test_deleting_volunteer_frees_shift(client, admin_headers):
    _, show_date_id = _create_hamlet(client, admin_headers)
    res = client.post(
        "/admin/api/shifts",
        json={"show_date_ids": [show_date_id], "roles": ["Usher"], "arrive_time": "18:00", "depart_time": "22:00"},
        headers=admin_headers,
    )
    shift_id = res.json()["results"][0]["shift_id"]
    v = _create_volunteer(client, admin_headers, "Gone")
    client.post("/admin/api/volunteer-shifts", json={"volunteerId": v, "shiftId": shift_id}, headers=admin_headers)

    assert client.delete(f"/admin/api/volunteers/{v}", headers=admin_headers).status_code == 200
    assert client.get(f"/admin/api/shifts/{shift_id}", headers=admin_headers).json()["participant"] is None


def test_swap_endpoint(client, admin_headers):
    _, show_date_id = _create_hamlet(client, admin_headers)
    res = client.post(
        "/admin/api/shifts",
        json={"show_date_ids": [show_date_id], "roles": ["Usher", "Box Office"], "arrive_time": "18:00", "depart_time": "22:00"},
        headers=admin_headers,
    )
    usher, box = (r["shift_id"] for r in res.json()["results"])
    mover = _create_volunteer(client, admin_headers, "Mover")
    other = _create_volunteer(client, admin_headers, "Other")
    client.post("/admin/api/volunteer-shifts", json={"volunteerId": mover, "shiftId": usher}, headers=admin_headers)

    roles = client.get(f"/admin/api/shifts/{usher}/available-roles", headers=admin_headers).json()
    assert [r["id"] for r in roles] == [box]

    client.post("/admin/api/volunteer-shifts", json={"volunteerId": other, "shiftId": box}, headers=admin_headers)
    res = client.post(f"/admin/api/volunteers/{mover}/shifts/{usher}/swap", json={"newShiftId": box}, headers=admin_headers)
    assert res.status_code == 409
    assert "kept on original shift" in res.json()["error"]
    assert client.get(f"/admin/api/shifts/{usher}", headers=admin_headers).json()["participant"]["id"] == mover

    client.delete(f"/admin/api/volunteers/{other}/shifts/{box}", headers=admin_headers)
    res = client.post(f"/admin/api/volunteers/{mover}/shifts/{usher}/swap", json={"newShiftId": box}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["participant"]["id"] == mover
    assert client.get(f"/admin/api/shifts/{usher}", headers=admin_headers).json()["participant"] is None


def test_duplicate_volunteer_email_conflicts(client, admin_headers):
    _create_volunteer(client, admin_headers, "Sam", "sam@example.com")
    res = client.post(
        "/admin/api/volunteers",
        json={"name": "Sam Again", "email": "SAM@example.com"},
        headers=admin_headers,
    )
    assert res.status_code == 409


def test_available_volunteers_and_stats(client, admin_headers, factory):
    show = factory.show("Twelfth Night")
    sd = factory.show_date(show)
    factory.show_date(show, days_ahead=8)
    busy = factory.volunteer("Busy")
    factory.volunteer("Free")
    factory.volunteer("Waiting", approved=False)
    factory.shift(sd, role="FOH Manager", participant=busy)
    open_shift = factory.shift(sd, role="Box Office")

    people = client.get(f"/admin/api/shifts/{open_shift.id}/available-volunteers", headers=admin_headers).json()
    assert [p["name"] for p in people] == ["Free"]

    stats = client.get("/admin/api/stats", headers=admin_headers).json()
    assert stats["unfilled_shifts"] == 1
    assert stats["performances_without_shifts"] == 1
    assert stats["pending_volunteers"] == 1

    unfilled = client.get("/admin/api/shifts/unfilled", headers=admin_headers).json()
    assert unfilled[0]["show_name"] == "Twelfth Night"
    assert [s["role"] for s in unfilled[0]["performances"][0]["shifts"]] == ["Box Office"]


def test_volunteer_available_shifts_skip_held_performances(client, admin_headers, factory):
    show = factory.show("Cats")
    sd1 = factory.show_date(show, days_ahead=2)
    sd2 = factory.show_date(show, days_ahead=3)
    v = factory.volunteer()
    factory.shift(sd1, role="FOH 2IC", participant=v)
    factory.shift(sd1, role="Box Office")
    free = factory.shift(sd2, role="Box Office")

    groups = client.get(f"/admin/api/volunteers/{v.id}/available-shifts", headers=admin_headers).json()
    ids = [s["id"] for g in groups for p in g["performances"] for s in p["shifts"]]
    assert ids == [free.id]


def test_approval_toggle_releases_shifts(client, admin_headers, factory):
    sd = factory.show_date(factory.show())
    v = factory.volunteer()
    sh = factory.shift(sd, participant=v)

    res = client.put(f"/admin/api/volunteers/{v.id}/approval", json={"approved": False}, headers=admin_headers)
    assert res.json() == {"ok": True, "approved": False, "removed_shifts": 1}
    assert client.get(f"/admin/api/shifts/{sh.id}", headers=admin_headers).json()["participant"] is None


def test_update_show_date_and_shift(client, admin_headers, factory):
    sd = factory.show_date(factory.show())
    sh = factory.shift(sd)
    start = now_utc() + timedelta(days=20)

    res = client.put(
        f"/admin/api/show-dates/{sd.id}",
        json={"start_time": to_local_input(start), "end_time": to_local_input(start + timedelta(hours=2))},
        headers=admin_headers,
    )
    assert res.status_code == 200

    res = client.put(
        f"/admin/api/shifts/{sh.id}",
        json={"role": "Raffle Ticket Selling", "arrive_time": "2024-10-18T18:00", "depart_time": "2024-10-18T17:00"},
        headers=admin_headers,
    )
    assert res.status_code == 400

    res = client.put(f"/admin/api/shifts/{sh.id}", json={"role": "Raffle Ticket Selling"}, headers=admin_headers)
    assert res.json()["role"] == "Raffle Ticket Selling"


def test_default_roles_and_server_time(client, admin_headers):
    roles = client.get("/admin/api/shifts/default-roles", headers=admin_headers).json()
    assert roles[0] == "FOH Manager"
    assert "Box Office" in roles

    t = client.get("/admin/api/server-time", headers=admin_headers).json()
    assert t["timezone"] == "Australia/Adelaide"


def test_login_cookie_grants_access(client):
    assert client.post("/admin/login", json={"token": "wrong"}).status_code == 401

    res = client.post("/admin/login", json={"token": "test-admin-token"})
    assert res.status_code == 200
    assert "admin_session" in res.cookies

    assert client.get("/admin/api/shows").status_code == 200

    client.post("/admin/logout")
    client.cookies.clear()
    assert client.get("/admin/api/shows").status_code == 401


def test_admin_pages_redirect_then_render(client, admin_headers, factory):
    res = client.get("/admin", follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/admin/login"

    show = factory.show("The Tempest")
    sd = factory.show_date(show)
    v = factory.volunteer("Prospero")
    factory.shift(sd, role="Box Office", participant=v)

    for path in ("/admin", "/admin/shows", f"/admin/shows/{show.id}", "/admin/volunteers",
                 f"/admin/volunteers/{v.id}", "/admin/unfilled"):
        res = client.get(path, headers=admin_headers)
        assert res.status_code == 200, path

    assert "The Tempest" in client.get(f"/admin/shows/{show.id}", headers=admin_headers).text
    assert "Prospero" in client.get(f"/admin/volunteers/{v.id}", headers=admin_headers).text


def test_database_outage_is_503(client, admin_headers, monkeypatch):
    def down(db):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(shows, "list_shows", down)

    res = client.get("/admin/api/shows", headers=admin_headers)
    assert res.status_code == 503
    assert res.json() == {"error": "Database unavailable"}


def test_unauthenticated_delete_keeps_show(client, admin_headers, factory):
    show = factory.show("Cats")

    res = client.delete(f"/admin/api/shows/{show.id}")
    assert res.status_code == 401
    assert client.get(f"/admin/api/shows/{show.id}", headers=admin_headers).json()["name"] == "Cats"


def test_show_name_constraint_matches_migration():
    names = {c.name for c in Show.__table__.constraints if isinstance(c, UniqueConstraint)}
    assert names == {"uq_shows_name"}
