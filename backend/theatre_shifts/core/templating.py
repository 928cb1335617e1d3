from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from theatre_shifts.core import timezone as tz

PACKAGE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"
STATIC_DIR = PACKAGE_DIR / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# every template renders times through the same display zone
templates.env.filters.update(
    local_date=tz.format_date,
    local_time=tz.format_time,
    local_date_time=tz.format_date_time,
    long_date=tz.format_long_date,
    time_range=tz.format_shift_time_range,
    performance=tz.format_performance,
    local_input=tz.to_local_input,
)
templates.env.tests["today"] = tz.is_today
