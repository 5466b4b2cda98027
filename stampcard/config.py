import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding="utf-8")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _list_env(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL") or "sqlite:///./stampcard.db")

    user_service_url: str = field(default_factory=lambda: os.getenv("USER_SERVICE_URL") or "http://user-server:3000")
    user_service_timeout_seconds: int = field(default_factory=lambda: _int_env("USER_SERVICE_TIMEOUT_SECONDS", 5))

    keycloak_token_url: str | None = field(default_factory=lambda: os.getenv("KEYCLOAK_TOKEN_URL"))
    keycloak_client_id: str | None = field(default_factory=lambda: os.getenv("KEYCLOAK_CLIENT_ID"))
    keycloak_client_secret: str | None = field(default_factory=lambda: os.getenv("KEYCLOAK_CLIENT_SECRET"))

    coupon_validity_days: int = field(default_factory=lambda: _int_env("COUPON_VALIDITY_DAYS", 30))
    default_cycle_size: int = field(default_factory=lambda: _int_env("DEFAULT_CYCLE_SIZE", 15))
    max_stamps_per_apply: int = field(default_factory=lambda: _int_env("MAX_STAMPS_PER_APPLY", 200))

    cors_origins: list[str] = field(
        default_factory=lambda: _list_env(
            "CORS_ORIGINS",
            [
                "http://localhost:3000",
                "https://localhost:3000",
                "http://127.0.0.1:3000",
                "https://127.0.0.1:3000",
            ],
        )
    )

    log_level: str = field(default_factory=lambda: (os.getenv("LOG_LEVEL") or "INFO").upper())

    @property
    def counter_sync_configured(self) -> bool:
        return bool(self.keycloak_token_url and self.keycloak_client_id and self.keycloak_client_secret)


settings = Settings()
