"""Logging setup for the typing tracker.

Every component logs under a ``tt.<namespace>`` logger so the agent can
filter its in-memory history by component (``GET /api/logs?namespace=flush``)
and change verbosity at runtime (``PUT /api/logs/level``).

Environment:
    TT_LOG_LEVEL        root level, default INFO
    TT_LOG_FORMAT       console format string
    TT_LOG_BUFFER_SIZE  entries kept for /api/logs, default 500
"""

import logging
import os
import sys
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

LOGGER_PREFIX = 'tt'

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Component namespaces and what they cover
NAMESPACES = {
    'clipboard': 'Clipboard Sampling',
    'classifier': 'Change Classification',
    'session': 'Session Store',
    'flush': 'Flush Scheduling',
    'transport': 'Backend Transport',
    'config': 'Configuration',
    'agent': 'Editor Agent',
    'backend': 'Aggregation Backend',
}

# Chatty third-party loggers held at WARNING
QUIET_LOGGERS = ('uvicorn.access', 'httpx', 'httpcore')


def _namespace_of(logger_name: str) -> str:
    parts = logger_name.split('.')
    if len(parts) > 1 and parts[0] == LOGGER_PREFIX:
        return parts[1]
    return 'general'


def _parse_level(level: str | int | None, default: int = logging.INFO) -> int:
    if level is None:
        return default
    if isinstance(level, int):
        return level
    return getattr(logging, level.strip().upper(), default)


@dataclass
class LogEntry:
    timestamp: str
    level: str
    namespace: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


class LogBufferHandler(logging.Handler):
    """Keeps the most recent formatted records for the agent's log view."""

    def __init__(self, buffer_size: int = 500):
        super().__init__()
        self.buffer: deque[LogEntry] = deque(maxlen=buffer_size)

    def emit(self, record: logging.LogRecord):
        try:
            self.buffer.append(LogEntry(
                timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                level=record.levelname,
                namespace=_namespace_of(record.name),
                message=self.format(record),
            ))
        except Exception:
            self.handleError(record)

    def get_history(
        self,
        count: int = 100,
        namespace: Optional[str] = None,
        min_level: str | int | None = None,
    ) -> list[dict]:
        """Newest ``count`` entries, optionally limited to one namespace or level."""
        threshold = _parse_level(min_level, default=logging.NOTSET)
        entries = [
            e for e in self.buffer
            if (not namespace or e.namespace == namespace)
            and logging.getLevelName(e.level) >= threshold
        ]
        return [e.to_dict() for e in entries[-count:]] if count > 0 else []

    def clear_buffer(self):
        self.buffer.clear()


_buffer_handler: Optional[LogBufferHandler] = None


def get_log_buffer_handler() -> LogBufferHandler:
    """Process-wide buffer handler, created on first use."""
    global _buffer_handler
    if _buffer_handler is None:
        _buffer_handler = LogBufferHandler(int(os.environ.get('TT_LOG_BUFFER_SIZE', '500')))
        _buffer_handler.setFormatter(logging.Formatter('%(message)s'))
    return _buffer_handler


def _apply_level(level: int):
    for namespace in NAMESPACES:
        logging.getLogger(f'{LOGGER_PREFIX}.{namespace}').setLevel(level)


def setup_logging(level: str | int | None = None, log_format: Optional[str] = None) -> None:
    """
    Install console and buffer handlers on the root logger.

    Args:
        level: Level name or constant (default: TT_LOG_LEVEL or INFO)
        log_format: Console format (default: TT_LOG_FORMAT or DEFAULT_FORMAT)
    """
    log_level = _parse_level(level if level is not None else os.environ.get('TT_LOG_LEVEL'))
    log_format = log_format or os.environ.get('TT_LOG_FORMAT', DEFAULT_FORMAT)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(log_format))
    buffer = get_log_buffer_handler()
    for handler in (console, buffer):
        handler.setLevel(log_level)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _apply_level(log_level)


def set_log_level(level: str | int):
    """Change the root, namespace and handler levels at runtime."""
    level = _parse_level(level)
    root = logging.getLogger()
    root.setLevel(level)
    _apply_level(level)
    for handler in root.handlers:
        handler.setLevel(level)


def get_logger(name: str, namespace: Optional[str] = None) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Logger name (typically __name__), used when namespace is unknown
        namespace: One of NAMESPACES (flush, transport, agent, ...)
    """
    if namespace in NAMESPACES:
        return logging.getLogger(f'{LOGGER_PREFIX}.{namespace}')
    return logging.getLogger(name)
