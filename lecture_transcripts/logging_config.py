"""Logging setup for the lecture transcript extractor.

Console output is coloured when stdout is a terminal. File output rotates
(10MB x 5 by default) and can be written as JSON lines. Lanes share one
event loop, so lane identity travels on a ``LaneLogger`` adapter rather
than in global state.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ROOT_LOGGER = 'lecture_transcripts'

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(module)s:%(lineno)d] %(message)s"
EXTRA_FIELDS = ('lane', 'lecture_id', 'details')


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with lane and lecture context when present."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'ts': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'where': f"{record.module}:{record.lineno}",
        }
        payload.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ColoredFormatter(logging.Formatter):
    """Colours the level name on interactive terminals."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[2m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[1;31m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, datefmt: Optional[str] = None, stream=None):
        super().__init__(fmt, datefmt=datefmt)
        stream = stream or sys.stdout
        self.use_color = hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().format(record)
        # Work on a copy; other handlers must see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, '')
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt='%H:%M:%S', stream=sys.stdout))
    return handler


def _file_handler(log_file: str, json_format: bool, max_bytes: int, backup_count: int) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(FILE_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = False,
    console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """(Re)configure the package logger and return it.

    Args:
        level: Level name applied to the package logger
        log_file: Rotating log file; its directory is created if missing
        json_format: Write the file as JSON lines
        console: Log to stdout
        max_bytes: Rotation size of the log file
        backup_count: Rotated files to keep
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.getLevelName(level.upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if console:
        root.addHandler(_console_handler())
    if log_file:
        root.addHandler(_file_handler(log_file, json_format, max_bytes, backup_count))

    # Keep records out of the interpreter's root logger
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger, e.g. ``get_logger('scheduler')``."""
    return logging.getLogger(f'{ROOT_LOGGER}.{name}')


class LaneLogger(logging.LoggerAdapter):
    """Prefixes messages with ``[lane N]`` and tags records with ``lane``."""

    def __init__(self, logger: logging.Logger, lane: int):
        super().__init__(logger, {'lane': lane})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        extra.setdefault('lane', self.extra['lane'])
        kwargs['extra'] = extra
        return f"[lane {self.extra['lane']}] {msg}", kwargs


def log_exception(logger, exc: Exception, message: str = "An error occurred",
                  level: int = logging.ERROR) -> None:
    """Log ``exc`` with traceback, attaching its lecture id and details as extras.

    Works with plain loggers and ``LaneLogger``.
    """
    extra = {}
    lecture_id = getattr(exc, 'lecture_id', None)
    if lecture_id is not None:
        extra['lecture_id'] = lecture_id
    details = getattr(exc, 'details', None)
    if details:
        extra['details'] = details
    logger.log(level, f"{message}: {exc}", exc_info=exc, extra=extra)
