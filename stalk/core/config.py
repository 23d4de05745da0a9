# stalk/core/config.py
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _PROJECT_ROOT / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path} (exists={env_path.exists()})")
    load_dotenv(env_path)


def secret_or_plain(value: Any) -> str:
    """Return the underlying string for SecretStr values, or the value itself."""
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    if value is None:
        return ""
    return str(value)


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables or `.env`.

    Push notifications are optional: when no VAPID keypair is configured
    the push fanout runs in degraded (inert) mode.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development", description="Deployment environment")
    app_name: str = Field(default=BRAND_NAME, description="Name shown in push titles")
    log_level: str = Field(default="INFO")
    is_testing: bool = Field(default=False)

    # Database
    database_url: str = Field(
        default="sqlite:///./stalk.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False)

    # Auth collaborator (token decoding only)
    secret_key: SecretStr = Field(default=SecretStr("stalk-secret-key-change-me"))
    algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)

    # Web push (VAPID)
    vapid_public_key: str = Field(default="", description="VAPID public key (urlsafe base64)")
    vapid_private_key: SecretStr = Field(default=SecretStr(""))
    vapid_subject: str = Field(
        default="mailto:admin@example.com",
        description="Contact subject sent in the VAPID claims",
    )
    vapid_file_path: Optional[str] = Field(
        default=None,
        description="JSON file with publicKey/privateKey, used when env keys are absent",
    )
    push_ttl_seconds: int = Field(default=60 * 60 * 24, ge=0)
    push_timeout_seconds: float = Field(default=10.0, gt=0)

    # Server (python -m stalk)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)

    # Frontend
    frontend_url: str = Field(default="", description="Base URL for push icon/badge assets")
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}:
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @field_validator("vapid_subject")
    @classmethod
    def _validate_vapid_subject(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned.startswith(("mailto:", "https://")):
            raise ValueError("VAPID subject must be a mailto: or https:// URI")
        return cleaned

    def vapid_file_candidates(self) -> List[Path]:
        """Locations checked for a VAPID key file, most specific first."""
        candidates: List[Path] = []
        if self.vapid_file_path:
            candidates.append(Path(self.vapid_file_path))
        candidates.append(_PROJECT_ROOT / ".vapid.json")
        return candidates


settings = Settings()
