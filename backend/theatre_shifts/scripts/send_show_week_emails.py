"""Email every assigned volunteer their schedule in show week.

Run once a day from cron in the backend environment:

    python -m theatre_shifts.scripts.send_show_week_emails

Picks performances starting within REMINDER_DAYS and sends each approved volunteer
holding a shift on one of them a single schedule email listing all their upcoming shifts.

Env:
  - DATABASE_URL, ADMIN_TOKEN, JWT_SECRET (as for the app)
  - RESEND_API_KEY (without it emails are simulated and only logged)
  - REMINDER_DAYS (default 7)
  - DRY_RUN=1 prints matches without sending
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta

from theatre_shifts.core.config import settings
from theatre_shifts.core.db import SessionLocal
from theatre_shifts.core.timezone import format_date, now_utc
from theatre_shifts.services import email, volunteers

REMINDER_DAYS = int(os.getenv("REMINDER_DAYS", "7"))
DRY_RUN = os.getenv("DRY_RUN", "").strip() in ("1", "true", "yes")

log = logging.getLogger("theatre_shifts.scripts.show_week")


def main() -> int:
    now = now_utc()
    horizon = now + timedelta(days=REMINDER_DAYS)

    sent = 0
    with SessionLocal() as db:
        for volunteer, sd in volunteers.show_week_recipients(db, start=now, end=horizon):
            if DRY_RUN:
                print(
                    f"DRY_RUN match: volunteer_id={volunteer.id} email={volunteer.email} "
                    f"first_performance={format_date(sd.start_time)}"
                )
                continue

            upcoming = volunteers.upcoming_shifts(db, volunteer.id)
            result = email.send_schedule(db, volunteer, upcoming)
            if result.sent:
                sent += 1
            else:
                log.warning("show-week email failed volunteer=%s", volunteer.id)

    return sent


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    n = main()
    print(f"sent={n}")
