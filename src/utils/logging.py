"""Centralized structlog configuration for the tracker, API and scripts."""

import logging

import structlog

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Configure structlog with the project-standard processor chain.

    ``level`` defaults to ``settings.LOG_LEVEL``. Safe to call multiple
    times; only the first call takes effect.
    """
    global _configured
    if _configured:
        return
    if level is None:
        from config.settings import settings
        level = settings.LOG_LEVEL
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )
    _configured = True
