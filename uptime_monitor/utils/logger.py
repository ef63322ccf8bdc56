"""Structured logging for the service, as JSON lines or plain text."""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional
import structlog
from pythonjsonlogger import jsonlogger

FORMATTERS = {
    "json": lambda: jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"}
    ),
    "text": lambda: logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ),
}

# Floor levels for chatty third-party loggers; APScheduler logs every sweep at INFO
LIBRARY_LEVELS: Dict[str, int] = {
    "apscheduler": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "aiohttp.access": logging.WARNING,
}

STRUCTLOG_PROCESSORS = (
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
)


def _build_handlers(log_format: str, log_file: Optional[str], console: bool) -> List[logging.Handler]:
    make_formatter = FORMATTERS.get(log_format, FORMATTERS["text"])
    handlers: List[logging.Handler] = []

    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(make_formatter())
    return handlers


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    console: bool = True
) -> None:
    """
    Route application and library logs to the configured sinks.

    Replaces any handlers already on the root logger, so calling it again
    (for example after a config reload) does not duplicate output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" for one JSON object per line, "text" otherwise
        log_file: Path to log file (None for no file logging)
        console: Whether to log to stdout

    Example:
        ```python
        setup_logging(level="INFO", log_format="json", log_file="logs/uptime_monitor.log")
        logger = get_logger(__name__)
        logger.info("Sweep finished", extra={"monitors": 12})
        ```
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        handlers=_build_handlers(log_format, log_file, console),
        force=True
    )

    for name, floor in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(max(numeric_level, floor))

    structlog.configure(
        processors=list(STRUCTLOG_PROCESSORS),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Return the stdlib logger for ``name``; context goes in ``extra``."""
    return logging.getLogger(name)
