import logging

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from theatre_shifts.core.config import settings
from theatre_shifts.core.errors import install_error_handlers
from theatre_shifts.core.templating import STATIC_DIR
from theatre_shifts.routers import admin_api, admin_pages, volunteer

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Theatre Shifts")

install_error_handlers(app)

app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

app.include_router(admin_api.router)
app.include_router(admin_pages.router)
app.include_router(volunteer.router)


@app.get("/", include_in_schema=False)
def index():
    return RedirectResponse(url="/admin", status_code=303)


@app.get("/health")
def health():
    return {"status": "ok"}
