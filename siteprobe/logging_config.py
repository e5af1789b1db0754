"""JSON structured logging configuration."""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "siteprobe"

# Install their own handlers; pointed at ours instead
_FOREIGN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")

# Log every outbound validator/PageSpeed request at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore")


def build_formatter(service: str = SERVICE_NAME) -> JsonFormatter:
    """One JSON object per record, tagged with the emitting service."""
    return JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        static_fields={"service": service},
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def setup_logging(log_level: str = "INFO", service: str = SERVICE_NAME) -> None:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(service))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers[:] = [handler]

    for name in _FOREIGN_LOGGERS:
        foreign = logging.getLogger(name)
        foreign.handlers[:] = [handler]
        foreign.propagate = False

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    # runtime warnings (e.g. unclosed clients) end up in the same JSON stream
    logging.captureWarnings(True)
