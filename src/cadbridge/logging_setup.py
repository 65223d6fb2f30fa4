"""Logging configuration for CadBridge.

Kernel, GLB and conversion modules log through ``structlog.get_logger``;
this module decides where those events go and how they are rendered.
Output goes to stderr so GLB bytes written to stdout stay clean.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, List

import orjson
import structlog

if TYPE_CHECKING:
    from .settings import Settings


LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Logging profile per CADBRIDGE_ENV value
CONFIGS = {
    "development": {
        "level": "DEBUG",
        "enable_colors": True,
        "enable_json": False,
    },
    "production": {
        "level": "INFO",
        "enable_colors": False,
        "enable_json": True,
    },
    "testing": {
        "level": "WARNING",
        "enable_colors": False,
        "enable_json": False,
    },
}


def _orjson_dumps(event_dict: Any, **kwargs: Any) -> str:
    # Paths and other non-JSON values are rendered with str()
    return orjson.dumps(event_dict, default=str).decode("utf-8")


def build_processors(enable_colors: bool, enable_json: bool, extra_processors: List[Any] | None = None) -> List[Any]:
    """Processor chain shared by console and JSON output.

    JSON events are rendered with orjson and carry tracebacks as dicts.
    """
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
    ]

    if extra_processors:
        processors.extend(extra_processors)

    if enable_json:
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer(serializer=_orjson_dumps))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=enable_colors and sys.stderr.isatty()))
    return processors


def configure_logging(
    level: str = "INFO",
    enable_colors: bool = True,
    enable_json: bool = False,
    extra_processors: List[Any] | None = None,
) -> None:
    """Configure structured logging for CadBridge.

    Args:
        level: Log level name; unknown names fall back to INFO
        enable_colors: Enable colored console output when stderr is a TTY
        enable_json: Render one JSON object per event
        extra_processors: Additional structlog processors run before rendering
    """
    numeric_level = LOG_LEVELS.get(level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)

    structlog.configure(
        processors=build_processors(enable_colors, enable_json, extra_processors),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_settings(settings: "Settings") -> None:
    """Configure logging from the environment profile in ``settings``.

    An explicit ``settings.log_level`` overrides the profile's level.
    """
    config = dict(CONFIGS.get(settings.environment, CONFIGS["production"]))
    if settings.log_level:
        config["level"] = settings.log_level
    configure_logging(**config)
