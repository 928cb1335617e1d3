from __future__ import annotations

import hmac
import logging

import jwt
from fastapi import Cookie, Depends, Header, Request
from sqlalchemy.orm import Session

from theatre_shifts.auth.jwt_tokens import (
    ADMIN_TOKEN_TYPE,
    admin_jwt_config,
    decode_token,
    volunteer_id_from_token,
)
from theatre_shifts.core.config import settings
from theatre_shifts.core.db import get_db
from theatre_shifts.core.errors import NotFound, Unauthorized
from theatre_shifts.models import Participant

ADMIN_COOKIE = "admin_session"

log = logging.getLogger("theatre_shifts.auth")


def admin_token_ok(token: str | None) -> bool:
    if not token:
        return False
    return hmac.compare_digest(token.strip().encode("utf-8"), settings.ADMIN_TOKEN.encode("utf-8"))


def _bearer_ok(authorization: str | None) -> bool:
    if not authorization:
        return False
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return False
    return admin_token_ok(token)


def _session_ok(session_token: str | None) -> bool:
    if not session_token:
        return False
    try:
        decode_token(admin_jwt_config(), session_token, ADMIN_TOKEN_TYPE)
    except jwt.PyJWTError:
        return False
    return True


def is_admin(request: Request) -> bool:
    return _bearer_ok(request.headers.get("authorization")) or _session_ok(request.cookies.get(ADMIN_COOKIE))


def require_admin(
    request: Request,
    authorization: str | None = Header(default=None),
    admin_session: str | None = Cookie(default=None, alias=ADMIN_COOKIE),
) -> None:
    if _bearer_ok(authorization) or _session_ok(admin_session):
        return
    log.warning("rejected admin request %s %s", request.method, request.url.path)
    raise Unauthorized()


def get_link_volunteer(token: str, db: Session = Depends(get_db)) -> Participant:
    """Resolve the volunteer from the signed token in a login link."""
    try:
        volunteer_id = volunteer_id_from_token(token)
    except (jwt.PyJWTError, ValueError):
        raise Unauthorized("Invalid or expired link")

    volunteer = db.get(Participant, volunteer_id)
    if volunteer is None:
        raise NotFound("Volunteer not found")
    return volunteer
