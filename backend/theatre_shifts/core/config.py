from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str = Field(..., min_length=1)

    # Static bearer token for the admin API
    ADMIN_TOKEN: str = Field(..., min_length=1)

    # All stored timestamps are shown in this zone
    DISPLAY_TIMEZONE: str = "Australia/Adelaide"

    # JWT (admin session cookie + volunteer login links); HS256 wants at least 32 bytes
    JWT_SECRET: str = Field(..., min_length=32)
    JWT_ISS: str = "theatre-shifts"
    JWT_AUD: str = "theatre-shifts-web"
    ADMIN_SESSION_TTL_SECONDS: int = 60 * 60 * 12
    VOLUNTEER_LINK_TTL_SECONDS: int = 60 * 60 * 24 * 30  # 30 days

    # Cookie
    COOKIE_SECURE: bool = False

    BASE_URL: str = "http://localhost:8000"

    # Email (Resend). No key -> emails are only logged.
    RESEND_API_KEY: str = ""
    FROM_EMAIL: str = "theatre@example.com"
    FROM_NAME: str = "Theatre Shifts"

    # Contact block shown in every volunteer email
    CONTACT_NAME: str = "Front of House Manager"
    CONTACT_PHONE: str = "0434 586 878"
    CONTACT_ORGANIZATION: str = "The Theatre"
    PHONE_COUNTRY_CODE: str = "61"

    LOG_LEVEL: str = "INFO"

    @field_validator("DISPLAY_TIMEZONE")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone {v!r}") from e
        return v

    def sqlalchemy_url(self) -> str:
        url = self.database_url
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+psycopg2://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg2://", 1)
        return url

    def email_simulated(self) -> bool:
        return not self.RESEND_API_KEY


_ENV_NAMES = {"database_url": "DATABASE_URL"}


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        names = sorted({_ENV_NAMES.get(str(err["loc"][0]), str(err["loc"][0])) for err in e.errors()})
        raise RuntimeError(
            "Missing or invalid required configuration: " + ", ".join(names)
        ) from e


settings = load_settings()
