"""Logging setup for the server and the CLI.

`configure_logging` is called once from a composition root (`main` or `cli`).
Everything else only emits, through `LoggingPort` or module loggers.

Each record carries a correlation id taken from `correlation_id_var`: the web
adapter sets a per-request id, the CLI the id of the job it is tracking.
"""

from __future__ import annotations

import contextvars
import logging
import sys
from typing import Optional

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default="-"
)

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s %(correlation_id)s: %(message)s"


def coerce_level(level: int | str | None) -> int:
    """Map 'debug', 'INFO', 20 ... to a numeric level; unknown names give INFO."""
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(str(level).strip().upper(), logging.INFO)


class _CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


class _LevelRangeFilter(logging.Filter):
    """Pass records with min_level <= levelno <= max_level."""

    def __init__(self, min_level: int = logging.NOTSET, max_level: int = logging.CRITICAL):
        super().__init__()
        self.min_level = min_level
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return self.min_level <= record.levelno <= self.max_level


def _handler(stream, formatter: logging.Formatter, level_filter: logging.Filter) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.addFilter(level_filter)
    handler.addFilter(_CorrelationIdFilter())
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: int | str | None = None,
    fmt: Optional[str] = None,
    split_streams: bool = True,
    disable_uvicorn_access: bool = False,
) -> None:
    """Install the root handlers.

    With `split_streams` (the server default) DEBUG/INFO go to stdout and
    WARNING and above to stderr. The CLI passes `split_streams=False` so every
    log line lands on stderr and stdout carries only the rendered result.
    """
    numeric_level = coerce_level(level)
    formatter = logging.Formatter(fmt or DEFAULT_FORMAT)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    if split_streams:
        root.addHandler(_handler(sys.stdout, formatter, _LevelRangeFilter(max_level=logging.INFO)))
        root.addHandler(_handler(sys.stderr, formatter, _LevelRangeFilter(min_level=logging.WARNING)))
    else:
        root.addHandler(_handler(sys.stderr, formatter, _LevelRangeFilter()))

    if disable_uvicorn_access:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger("ESF").debug(
        "Logging configured level=%s split_streams=%s", logging.getLevelName(numeric_level), split_streams
    )
