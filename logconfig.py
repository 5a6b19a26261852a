"""structlog setup for the storefront API."""
import logging
import os

import structlog


def configure_logging(level=None, fmt=None):
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    renderer_name = fmt or os.getenv("LOG_FORMAT", "console")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if renderer_name == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy library loggers
    logging.getLogger("pymongo").setLevel(logging.WARNING)
