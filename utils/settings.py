"""Environment-driven configuration for the review client"""
import os
import logging
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from utils.errors import ConfigError

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parent.parent

REFRESH_FIXED = "fixed"
REFRESH_BACKOFF = "backoff"
REFRESH_STRATEGIES = (REFRESH_FIXED, REFRESH_BACKOFF)


class ReviewSettings(BaseModel):
    api_url: str = "http://localhost:8080"
    api_token: Optional[str] = None
    http_timeout: float = 30.0
    refresh_strategy: str = REFRESH_FIXED
    refresh_delay_ms: int = Field(2000, ge=0)
    poll_max_attempts: int = Field(5, ge=1)
    poll_max_delay_ms: int = Field(16000, ge=0)
    max_upload_mb: float = Field(50, gt=0)
    log_level: str = "INFO"

    @property
    def refresh_delay(self) -> float:
        return self.refresh_delay_ms / 1000

    @property
    def poll_max_delay(self) -> float:
        return self.poll_max_delay_ms / 1000

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[Path] = None) -> ReviewSettings:
    """
    Build settings from the environment.

    When `env` is omitted the process environment is used, after loading a
    `.env` file from the project root (or `dotenv_path`).
    """
    if env is None:
        load_dotenv(dotenv_path or ROOT_DIR / '.env')
        env = os.environ

    strategy = env.get('GRADING_REFRESH_STRATEGY', REFRESH_FIXED).strip().lower()
    if strategy not in REFRESH_STRATEGIES:
        raise ConfigError(
            f"GRADING_REFRESH_STRATEGY must be one of {', '.join(REFRESH_STRATEGIES)}, got {strategy!r}"
        )

    token = env.get('GRADING_API_TOKEN', '').strip() or None

    try:
        settings = ReviewSettings(
            api_url=env.get('GRADING_API_URL', 'http://localhost:8080').strip().rstrip('/'),
            api_token=token,
            http_timeout=_number(env, 'GRADING_HTTP_TIMEOUT', 30.0, float),
            refresh_strategy=strategy,
            refresh_delay_ms=_number(env, 'GRADING_REFRESH_DELAY_MS', 2000, int),
            poll_max_attempts=_number(env, 'GRADING_POLL_MAX_ATTEMPTS', 5, int),
            poll_max_delay_ms=_number(env, 'GRADING_POLL_MAX_DELAY_MS', 16000, int),
            max_upload_mb=_number(env, 'GRADING_MAX_UPLOAD_MB', 50, float),
            log_level=env.get('LOG_LEVEL', 'INFO').strip().upper() or 'INFO',
        )
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        raise ConfigError(f"Invalid configuration: {e}")

    if not settings.api_token:
        logger.warning("GRADING_API_TOKEN is not set; requests will fail until a credential is provided")
    return settings
