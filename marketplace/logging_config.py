import logging
from typing import Optional

import structlog

from marketplace.config import settings


def _pick_renderer():
    # Human-readable output locally, one JSON object per line everywhere else
    if settings.ENVIRONMENT in ("development", "test"):
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def setup_logging(level: Optional[str] = None):
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _pick_renderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=settings.APP_NAME)

    # tenacity's before_sleep hook logs through the stdlib
    logging.basicConfig(level=log_level, format="%(levelname)s %(name)s %(message)s")
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
