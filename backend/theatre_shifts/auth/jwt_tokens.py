from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import jwt  # PyJWT

from theatre_shifts.core.config import settings

ADMIN_TOKEN_TYPE = "admin"
VOLUNTEER_TOKEN_TYPE = "volunteer"


@dataclass(frozen=True)
class JwtConfig:
    secret: str
    issuer: str
    audience: str
    ttl_seconds: int


def admin_jwt_config() -> JwtConfig:
    return JwtConfig(
        secret=settings.JWT_SECRET,
        issuer=settings.JWT_ISS,
        audience=settings.JWT_AUD,
        ttl_seconds=settings.ADMIN_SESSION_TTL_SECONDS,
    )


def volunteer_jwt_config() -> JwtConfig:
    return JwtConfig(
        secret=settings.JWT_SECRET,
        issuer=settings.JWT_ISS,
        audience=settings.JWT_AUD,
        ttl_seconds=settings.VOLUNTEER_LINK_TTL_SECONDS,
    )


def create_token(cfg: JwtConfig, subject: str, token_type: str) -> str:
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": now,
        "exp": now + cfg.ttl_seconds,
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "typ": token_type,
    }
    return jwt.encode(payload, cfg.secret, algorithm="HS256")


def decode_token(cfg: JwtConfig, token: str, token_type: str) -> dict[str, Any]:
    payload = jwt.decode(
        token,
        cfg.secret,
        algorithms=["HS256"],
        issuer=cfg.issuer,
        audience=cfg.audience,
        options={"require": ["exp", "iat", "iss", "aud", "sub"]},
    )
    if payload.get("typ") != token_type:
        raise jwt.InvalidTokenError("unexpected token type")
    return payload


def create_admin_session_token() -> str:
    return create_token(admin_jwt_config(), "admin", ADMIN_TOKEN_TYPE)


def create_volunteer_link_token(participant_id: int) -> str:
    return create_token(volunteer_jwt_config(), str(participant_id), VOLUNTEER_TOKEN_TYPE)


def volunteer_id_from_token(token: str) -> int:
    payload = decode_token(volunteer_jwt_config(), token, VOLUNTEER_TOKEN_TYPE)
    return int(payload["sub"])


def volunteer_login_url(participant_id: int, base_url: str | None = None) -> str:
    base = (base_url or settings.BASE_URL).rstrip("/")
    return f"{base}/volunteer/s/{create_volunteer_link_token(participant_id)}"
