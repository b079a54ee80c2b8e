"""Logging configuration for Drive Docs"""
import logging
import sys

from src.infrastructure.config.settings import Settings, get_settings


def setup_logging(settings: Settings | None = None):
    """Configure application-wide logging"""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str) -> logging.Logger:
    """Get logger for module"""
    return logging.getLogger(name)
