"""
billing_config -- single public entrypoint for billing engine settings.

Responsibility:
    ``get_active_settings()`` is the one way to obtain ``BillingSettings``
    at runtime.  Settings come from a YAML file; without an explicit path
    the packaged ``defaults.yaml`` is used.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``InvalidBillingConfigError`` -- unknown key or out-of-range value.

Audit relevance:
    Every successful call emits a ``billing_settings_loaded`` log entry with
    the source path and the effective throttle and retry limits.
"""

from __future__ import annotations

from pathlib import Path

from billing_config.loader import load_settings, parse_settings
from billing_config.schema import BillingSettings
from billing_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_settings(path: Path | str | None = None) -> BillingSettings:
    """Load the active billing settings."""
    source = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = load_settings(source)

    logger.info(
        "billing_settings_loaded",
        extra={
            "source": str(source),
            "max_retries": settings.max_retries,
            "max_throttle": settings.max_throttle,
            "throttle_multiplier": settings.throttle_multiplier,
            "max_in_flight": settings.max_in_flight,
            "timezone": settings.timezone,
        },
    )
    return settings


__all__ = [
    "BillingSettings",
    "DEFAULT_SETTINGS_PATH",
    "get_active_settings",
    "load_settings",
    "parse_settings",
]
