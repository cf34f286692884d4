from functools import lru_cache
import os
from typing import List, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False
    project_name: str = "ProjectHub API"
    environment: str = "development"

    # Raw CORS origins string - read from env
    cors_origins_raw: Optional[str] = Field(
        default=None,
        alias="CORS_ORIGINS"
    )

    @computed_field
    @property
    def backend_cors_origins(self) -> List[str]:
        """Parse CORS_ORIGINS from environment variable (comma-separated string)."""
        raw = self.cors_origins_raw
        if not raw:
            raw = os.environ.get("CORS_ORIGINS") or ""

        if not raw or not raw.strip():
            return []

        origins = []
        for origin in raw.split(","):
            origin = origin.strip()
            if origin:
                # Normalize protocol to lowercase (Https -> https, Http -> http)
                if origin.lower().startswith("https://"):
                    origin = "https://" + origin[8:]
                elif origin.lower().startswith("http://"):
                    origin = "http://" + origin[7:]
                origins.append(origin.rstrip("/"))
        return origins

    database_url: str = "sqlite+aiosqlite:///./projecthub.db"

    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # Invitations
    frontend_url: str = "http://localhost:3000"
    invitation_expiry_days: int = 7
    invitation_sweep_interval_minutes: int = 60
    enable_scheduler: bool = True

    # Email delivery. With no provider configured (or outside production)
    # emails are written to the log instead of being sent.
    email_from_address: str = "noreply@projecthub.com"
    email_from_name: str = "ProjectHub"
    sendgrid_api_key: Optional[str] = None
    aws_ses_region: Optional[str] = None

    # Upper bound for a single best-effort email or live-push call
    side_effect_timeout_seconds: float = 10.0

    # Rate limiting for the public invitation endpoints
    rate_limit_enabled: bool = True
    public_rate_limit: str = "20/minute"
    # Key rate limits on X-Forwarded-For / X-Real-IP. Enable only behind a
    # reverse proxy that overwrites these headers.
    trust_proxy_headers: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def invitation_link(self, token: str) -> str:
        """Shareable acceptance link for an invitation token."""
        return f"{self.frontend_url.rstrip('/')}/accept-invitation/{token}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
