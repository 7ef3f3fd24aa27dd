"""Error reporting hooks.

Sentry is only initialised when ``SENTRY_DSN`` is present; otherwise this is a no-op.
"""

from __future__ import annotations

import logging
import os

import sentry_sdk
from loguru import logger
from sentry_sdk.integrations.logging import LoggingIntegration

from apim_backup import APP_VERSION
from apim_backup.settings import SentrySettings, get_sentry_settings

_sentry_configured = False


def configure_sentry(settings: SentrySettings | None = None) -> bool:
    """Initialise the Sentry SDK once per process if a DSN is configured."""
    global _sentry_configured

    if _sentry_configured:
        return True
    settings = settings or get_sentry_settings()
    if not settings.enabled:
        logger.debug("Sentry DSN not set; Sentry disabled")
        return False

    sentry_sdk.init(
        dsn=settings.dsn,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=settings.traces_sample_rate,
        environment=settings.environment or os.getenv("ENV", "prod"),
        release=APP_VERSION,
    )
    _sentry_configured = True
    return True


__all__ = ["configure_sentry"]
