from __future__ import annotations

import logging
import sys
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class Settings(BaseSettings):
    """Runtime settings, read from ``ANNOSTUDIO_*`` env vars or a local ``.env``."""

    model_config = SettingsConfigDict(env_prefix="ANNOSTUDIO_", env_file=".env", extra="ignore")

    # ── Backend ────────────────────────────────────────────
    API_URL: str = "http://localhost:3001"
    REQUEST_TIMEOUT: float = 30.0
    IMAGE_TIMEOUT: float = 15.0  # per attempt (direct, then proxy)

    # ── UI ─────────────────────────────────────────────────
    DATASETS_PER_PAGE: int = 6
    USERS_PER_PAGE: int = 20
    TIMEZONE: str = "Asia/Kolkata"

    # ── Logging ────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    @property
    def api_base(self) -> str:
        return self.API_URL.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach one stream handler to the ``annostudio`` logger (idempotent across reruns)."""
    logger = logging.getLogger("annostudio")
    lvl = (level or get_settings().LOG_LEVEL).upper()
    logger.setLevel(getattr(logging, lvl, logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
