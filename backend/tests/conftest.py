import os

# Settings are read at import time, so the environment goes first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdef0123456789")
os.environ["RESEND_API_KEY"] = ""
os.environ["DISPLAY_TIMEZONE"] = "Australia/Adelaide"

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from theatre_shifts.core.config import settings  # noqa: E402
from theatre_shifts.core.db import Base, get_db  # noqa: E402
from theatre_shifts.core.timezone import now_utc  # noqa: E402
from theatre_shifts.main import app  # noqa: E402
from theatre_shifts.models import Participant, Shift, Show, ShowDate  # noqa: E402


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {settings.ADMIN_TOKEN}"}


class Factory:
    """Builds rows straight through the ORM; performances default to next week."""

    def __init__(self, db):
        self.db = db

    def show(self, name="Hamlet"):
        show = Show(name=name)
        self.db.add(show)
        self.db.commit()
        return show

    def show_date(self, show, days_ahead=7, hours=3):
        start = now_utc().replace(microsecond=0) + timedelta(days=days_ahead)
        sd = ShowDate(show_id=show.id, start_time=start, end_time=start + timedelta(hours=hours))
        self.db.add(sd)
        self.db.commit()
        return sd

    def shift(self, show_date, role="Usher 1 (Can see show)", participant=None):
        arrive = show_date.start_time - timedelta(hours=1)
        sh = Shift(
            show_date_id=show_date.id,
            role=role,
            arrive_time=arrive,
            depart_time=show_date.end_time,
            participant_id=participant.id if participant else None,
        )
        self.db.add(sh)
        self.db.commit()
        return sh

    def volunteer(self, name="Alex", email=None, approved=True, phone="0400 000 000"):
        p = Participant(name=name, email=email or f"{name.lower()}@example.com", phone=phone, approved=approved)
        self.db.add(p)
        self.db.commit()
        return p


@pytest.fixture
def factory(db):
    return Factory(db)
