from __future__ import annotations

import logging
import sys
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, MutableMapping, Optional

import structlog

from property_bookings.config import LOG_LEVEL

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# SQL statements and migration chatter stay quiet unless something breaks
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "alembic")


def stringify_domain_values(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """
    Render money, instants and enum members as plain strings.

    Amounts keep their exact decimal text ("1250.00", not a float), instants
    are ISO 8601, and statuses log by value.
    """
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, (datetime, date)):
            event_dict[key] = value.isoformat()
        elif isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def build_processors(json_output: bool) -> list[Processor]:
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        stringify_domain_values,
        structlog.processors.format_exc_info,
        renderer,
    ]


def setup_logging(level: str = LOG_LEVEL, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for the hosting application.

    Args:
        level: Minimum level name, defaults to LOG_LEVEL from the environment
        json_output: Force JSON (True) or console (False) rendering. When
            omitted, INFO and above log JSON and DEBUG gets the console renderer.
    """
    level = level.upper()
    numeric_level = logging.getLevelName(level)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    if json_output is None:
        json_output = numeric_level >= logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=build_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
