"""Logging configuration and utilities.

Every component logs through structlog. Events are rendered by structlog and
handed to the standard library, which fans them out to a colored console
handler on stderr and, optionally, a rotating file of JSON lines. stdout is
left alone because the object commands write their payload there.
"""

import functools
import json
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional

import colorlog
import structlog
from structlog.typing import Processor


LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

FILE_MAX_BYTES = 5 * 1024 * 1024
FILE_BACKUP_COUNT = 3


def resolve_level(name: str) -> int:
    """Map a level name such as ``info`` to its numeric value.

    Raises:
        ValueError: If the name is not a standard logging level
    """
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        return json.dumps(line)


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root logger handlers.

    Arguments override the ``GSDATA_LOG_*`` settings.
    """
    from ..config.settings import get_settings

    settings = get_settings().logging
    level = resolve_level(log_level or settings.level)
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if (log_format or settings.format) == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(level)
    # Repeated setup (tests, embedding) replaces rather than stacks handlers
    for handler in list(root.handlers):
        if getattr(handler, "_gsdata", False):
            root.removeHandler(handler)
            handler.close()

    root.addHandler(_console_handler(level))
    file_path = log_file or settings.file_path
    if file_path:
        root.addHandler(_file_handler(Path(file_path), level))


def _console_handler(level: int) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(levelname)-8s%(reset)s %(name)s: %(message)s",
        log_colors=LOG_COLORS,
    ))
    handler._gsdata = True
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=FILE_MAX_BYTES,
        backupCount=FILE_BACKUP_COUNT,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JsonLineFormatter())
    handler._gsdata = True
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_async_execution_time(func):
    """Log how long a coroutine took, and whether it raised."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__).bind(function=func.__qualname__)
        started = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Coroutine failed",
                elapsed=f"{time.perf_counter() - started:.3f}s",
                error=str(e)
            )
            raise
        logger.debug("Coroutine finished", elapsed=f"{time.perf_counter() - started:.3f}s")
        return result

    return wrapper
