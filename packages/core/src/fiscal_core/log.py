"""Logging setup.

Modules log through ``structlog.get_logger()`` with snake_case event
names. Call ``configure_logging`` once at application startup; without it
structlog's defaults apply.

Usage:
    from fiscal_core.log import configure_logging

    configure_logging()                      # from FISCAL_* environment
    configure_logging(FiscalConfig(log_format="json", log_level="DEBUG"))
"""

import logging
import sys
from typing import Optional

import structlog

from .config import FiscalConfig


def _debug_processors(config: FiscalConfig) -> list:
    if not config.is_debug:
        return []
    return [
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.LINENO,
            }
        )
    ]


def configure_logging(config: Optional[FiscalConfig] = None) -> None:
    """Configure structlog level and renderer from the root config.

    Production always renders JSON; debug adds the calling module and line.
    """
    config = config or FiscalConfig()
    level = logging.getLevelName(config.log_level)

    if config.log_format == "json" or config.is_production:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            *_debug_processors(config),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
