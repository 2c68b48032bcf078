"""User-facing notices (the editor's info/warning/error popups)."""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

from .logging_config import get_logger

logger = get_logger(__name__, namespace='agent')

PREFIX = 'Typing Tracker'


@dataclass
class Notice:
    level: str  # 'info', 'warning', 'error'
    message: str
    timestamp: str

    def to_dict(self) -> dict:
        return {'level': self.level, 'message': self.message, 'timestamp': self.timestamp}


class Notifier:
    """Collects notices for the editor to display and logs them."""

    def __init__(self, buffer_size: int = 50):
        self.notices: deque[Notice] = deque(maxlen=buffer_size)
        self._shown_once: set[str] = set()

    def _add(self, level: str, message: str):
        text = f"{PREFIX}: {message}"
        self.notices.append(Notice(level, text, datetime.now(timezone.utc).isoformat()))
        log = {'info': logger.info, 'warning': logger.warning}.get(level, logger.error)
        log(message)

    def info(self, message: str):
        self._add('info', message)

    def warning(self, message: str):
        self._add('warning', message)

    def error(self, message: str):
        self._add('error', message)

    def warning_once(self, key: str, message: str):
        """Show a warning only the first time key is seen."""
        if key in self._shown_once:
            return
        self._shown_once.add(key)
        self.warning(message)

    def history(self, count: int = 20) -> list[dict]:
        return [n.to_dict() for n in list(self.notices)[-count:]]
