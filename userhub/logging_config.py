"""
Logging configuration for the user service.

Every process (coordinator and each worker) calls ``setup_logging`` once:
- Console output for immediate feedback
- Daily rotating file log per process
- Structured ``key=value`` context on access lines

Workers must pass ``stream=sys.stderr``: their stdout carries the
dispatch channel.
"""

import sys
import logging
from pathlib import Path
from typing import Optional, TextIO
from logging.handlers import TimedRotatingFileHandler


class StructuredFormatter(logging.Formatter):
    """
    Formatter that appends structured context to log messages.

    Produces ``timestamp | level | component | message | k=v | k=v``.
    """

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.split('.')[-1] if '.' in record.name else record.name
        record.component = component

        formatted = super().format(record)

        if hasattr(record, 'extra_context'):
            context_str = ' | '.join(f"{k}={v}" for k, v in record.extra_context.items())
            formatted += f" | {context_str}"

        return formatted


def setup_logging(
    log_dir: Optional[str] = "logs",
    log_level: str = "INFO",
    console_level: str = "INFO",
    log_name: str = "userhub",
    stream: TextIO = None,
    retention_days: int = 7,
) -> logging.Logger:
    """
    Set up logging configuration for one process.

    Args:
        log_dir: Directory for log files (None disables file logging)
        log_level: File logging level (DEBUG, INFO, WARNING, ERROR)
        console_level: Console logging level
        log_name: Base name of the log file, e.g. ``userhub-worker-2``
        stream: Console stream (default stdout)
        retention_days: Days to retain rotated log files

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    detailed_formatter = StructuredFormatter(
        fmt='%(asctime)s | %(levelname)-8s | %(process)d | %(component)-15s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_formatter = StructuredFormatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(getattr(logging, console_level.upper()))
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = TimedRotatingFileHandler(
            filename=str(log_path / f"{log_name}.log"),
            when='midnight',
            interval=1,
            backupCount=retention_days,
            encoding='utf-8',
        )
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(detailed_formatter)
        file_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(file_handler)

    # aiohttp's own access log duplicates ours
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    root_logger.debug(f"Logging initialized for {log_name} (dir={log_dir}, level={log_level})")
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific component."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **context
):
    """
    Log a message with additional context.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, logging.ERROR, etc.)
        message: Log message
        **context: Additional context key-value pairs
    """
    extra = {'extra_context': context} if context else {}
    logger.log(level, message, extra=extra)
