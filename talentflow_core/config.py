"""
Runtime configuration.

Every setting can be overridden with a TALENTFLOW_-prefixed environment
variable, e.g. TALENTFLOW_REMOTE_TIMEOUT_SECONDS=5.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    """Settings for the mutation engine and its collaborators."""

    remote_base_url: str = "http://localhost:8000/api"
    remote_timeout_seconds: Optional[float] = Field(default=10.0, gt=0)

    history_db_path: str = ":memory:"
    documents_db_path: Optional[str] = None     # None keeps documents in memory

    # Failure injection for the in-memory authority, e.g. 0.075 and 0.15
    mock_failure_rate: float = Field(default=0.0, ge=0, le=1)
    mock_reorder_failure_rate: float = Field(default=0.0, ge=0, le=1)
    mock_min_delay_seconds: float = Field(default=0.0, ge=0)
    mock_max_delay_seconds: float = Field(default=0.0, ge=0)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="TALENTFLOW_", extra="ignore")


@lru_cache
def get_settings() -> CoreSettings:
    return CoreSettings()


def configure_logging(settings: Optional[CoreSettings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
