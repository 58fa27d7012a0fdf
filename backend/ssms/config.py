from __future__ import annotations

import os

APP_VERSION = "1.0.0"

_DEFAULT_SECRET_KEYS = frozenset({"change-me-in-production", ""})


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    PROJECT_NAME: str = "SSMS"
    API_V1_PREFIX: str = "/api/v1"

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "ssms")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "ssms")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "ssms")
    # Full URL override, e.g. sqlite+aiosqlite:///./ssms.sqlite for local runs
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    RESET_DB: bool = _env_bool("RESET_DB")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    ALLOWED_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
        if o.strip()
    ]

    # Invitations
    INVITE_TTL_DAYS: int = int(os.getenv("INVITE_TTL_DAYS", "7"))
    # When true, linking without a token falls back to the member role instead of failing
    INVITE_SOFT_FAIL: bool = _env_bool("INVITE_SOFT_FAIL", "true")
    INVITE_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("INVITE_SWEEP_INTERVAL_SECONDS", "3600"))

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
