"""Startup validation: catch misconfigurations before the app serves traffic."""
from __future__ import annotations

import logging
import sys

from config.settings import settings

logger = logging.getLogger(__name__)

_DEFAULT_JWT_SECRET = "social-dev-secret-change-in-prod"


def validate_settings() -> list[str]:
    """Validate configuration. Returns list of warnings (empty = all good).

    Raises SystemExit for critical misconfigurations in production.
    """
    warnings: list[str] = []
    is_prod = settings.DATABASE_URL and "sqlite" not in settings.DATABASE_URL

    if is_prod and settings.JWT_SECRET == _DEFAULT_JWT_SECRET:
        logger.critical("JWT_SECRET is still the default! Set a real secret for production.")
        sys.exit(1)

    if is_prod and "*" in settings.CORS_ORIGINS:
        warnings.append("CORS_ORIGINS is set to *, restrict in production")

    if settings.DEFAULT_PAGE_SIZE > settings.MAX_PAGE_SIZE:
        warnings.append(
            f"DEFAULT_PAGE_SIZE ({settings.DEFAULT_PAGE_SIZE}) exceeds MAX_PAGE_SIZE "
            f"({settings.MAX_PAGE_SIZE}); listings will be capped"
        )

    if is_prod and not settings.SENTRY_DSN:
        warnings.append("SENTRY_DSN not set; errors will only reach the logs")

    for w in warnings:
        logger.warning("%s", w)

    if not warnings:
        logger.info("All startup checks passed")

    return warnings
