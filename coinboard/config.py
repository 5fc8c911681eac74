"""Central configuration for coinboard."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _read_float(name: str, default: float) -> float:
    """Parse a float environment variable.

    Args:
        name: Environment variable name.
        default: Value used when the variable is unset, empty or invalid.

    Returns:
        Parsed float value.

    Example:
        >>> os.environ["REQUEST_INTERVAL_S"] = "1.5"
        >>> _read_float("REQUEST_INTERVAL_S", 2.0)
        1.5
    """
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def _read_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Configuration settings for coinboard.

    All settings are loaded from environment variables with sensible defaults.
    """

    COINGECKO_BASE_URL: str
    GECKOTERMINAL_BASE_URL: str
    VS_CURRENCY: str
    LOCALIZATION: str
    REQUEST_INTERVAL_S: float
    CACHE_TTL_S: float
    CHART_TTL_S: float
    MAX_RETRIES: int
    RETRY_DELAY_S: float
    HTTP_TIMEOUT_S: float
    CACHE_FILE: str | None
    COINS_FILE: str


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Returns:
        Settings object with all configuration values.

    Note:
        Invalid numeric values fall back to defaults. An empty CACHE_FILE
        keeps the cache in memory only.
    """
    coingecko_url = (
        os.environ.get("COINGECKO_BASE_URL") or "https://api.coingecko.com/api/v3"
    ).rstrip("/")
    terminal_url = (
        os.environ.get("GECKOTERMINAL_BASE_URL")
        or "https://api.geckoterminal.com/api/v2"
    ).rstrip("/")
    vs_currency = (os.environ.get("VS_CURRENCY") or "brl").strip().lower()
    localization = (os.environ.get("LOCALIZATION") or "pt").strip().lower()

    cache_file = os.environ.get("CACHE_FILE", "data/cache.json").strip() or None

    return Settings(
        COINGECKO_BASE_URL=coingecko_url,
        GECKOTERMINAL_BASE_URL=terminal_url,
        VS_CURRENCY=vs_currency,
        LOCALIZATION=localization,
        REQUEST_INTERVAL_S=_read_float("REQUEST_INTERVAL_S", 2.0),
        CACHE_TTL_S=_read_float("CACHE_TTL_S", 5 * 60),
        CHART_TTL_S=_read_float("CHART_TTL_S", 5 * 60),
        MAX_RETRIES=_read_int("MAX_RETRIES", 3),
        RETRY_DELAY_S=_read_float("RETRY_DELAY_S", 30.0),
        HTTP_TIMEOUT_S=_read_float("HTTP_TIMEOUT_S", 12.0),
        CACHE_FILE=cache_file,
        COINS_FILE=os.environ.get("COINS_FILE") or "coins.json",
    )


settings = _read_settings()


def validate_settings(s: Settings | None = None) -> None:
    """Log warnings for settings that will make the dashboard misbehave."""
    s = s or settings
    if s.REQUEST_INTERVAL_S <= 0:
        logger.warning(
            "REQUEST_INTERVAL_S is %s; upstream rate limits will not be respected.",
            s.REQUEST_INTERVAL_S,
        )
    if s.MAX_RETRIES < 0:
        logger.warning("MAX_RETRIES is negative; treating as 0.")
        s.MAX_RETRIES = 0
    if s.CACHE_FILE is None:
        logger.info("CACHE_FILE is empty; cached market data will not survive restarts.")


validate_settings()
