"""
Logging setup.

Configures loguru logger for the referral worker.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

from app.config.settings import settings


def setup_logging() -> None:
    """Configure logger with stderr output and file rotation."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )

    logger.info("Starting referral reset worker...")
