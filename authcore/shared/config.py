from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _csv(name: str, default: str = "") -> tuple[str, ...]:
    value = _env(name, default) or ""
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: str
    jwt_web_ttl_minutes: int
    jwt_cli_ttl_minutes: int
    cli_refresh_ttl_days: int
    cli_flow_ttl_minutes: int
    cli_verification_url: str
    oauth_state_ttl_minutes: int
    client_url: str
    server_url: str
    google_client_id: str
    google_client_secret: str
    github_client_id: str
    github_client_secret: str
    oauth_http_timeout_seconds: float
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_price_id: str
    stripe_one_time_price_id: str
    stripe_success_url: str
    stripe_cancel_url: str
    one_time_access_days: int
    cors_allow_origins: tuple[str, ...]
    log_level: str


def get_settings() -> Settings:
    client_url = (_env("CLIENT_URL", "http://localhost:3000") or "").rstrip("/")
    server_url = (_env("SERVER_URL", "http://localhost:8000") or "").rstrip("/")
    return Settings(
        database_url=_env("DATABASE_URL", ""),
        jwt_secret=_env("JWT_SECRET", ""),
        jwt_web_ttl_minutes=int(_env("JWT_WEB_TTL_MINUTES", "1440")),
        jwt_cli_ttl_minutes=int(_env("JWT_CLI_TTL_MINUTES", "15")),
        cli_refresh_ttl_days=int(_env("CLI_REFRESH_TTL_DAYS", "30")),
        cli_flow_ttl_minutes=int(_env("CLI_FLOW_TTL_MINUTES", "10")),
        cli_verification_url=_env("CLI_VERIFICATION_URL", f"{client_url}/cli/authorize"),
        oauth_state_ttl_minutes=int(_env("OAUTH_STATE_TTL_MINUTES", "10")),
        client_url=client_url,
        server_url=server_url,
        google_client_id=_env("GOOGLE_CLIENT_ID", ""),
        google_client_secret=_env("GOOGLE_CLIENT_SECRET", ""),
        github_client_id=_env("GITHUB_CLIENT_ID", ""),
        github_client_secret=_env("GITHUB_CLIENT_SECRET", ""),
        oauth_http_timeout_seconds=float(_env("OAUTH_HTTP_TIMEOUT_SECONDS", "10")),
        stripe_secret_key=_env("STRIPE_SECRET_KEY", ""),
        stripe_webhook_secret=_env("STRIPE_WEBHOOK_SECRET", ""),
        stripe_price_id=_env("STRIPE_PRICE_ID", ""),
        stripe_one_time_price_id=_env("STRIPE_ONE_TIME_PRICE_ID", ""),
        stripe_success_url=_env("STRIPE_SUCCESS_URL", f"{client_url}/payment/success"),
        stripe_cancel_url=_env("STRIPE_CANCEL_URL", f"{client_url}/payment"),
        one_time_access_days=int(_env("ONE_TIME_ACCESS_DAYS", "30")),
        cors_allow_origins=_csv("CORS_ALLOW_ORIGINS", client_url),
        log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )
