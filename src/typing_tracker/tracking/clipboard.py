"""Rate-limited access to the system clipboard."""

import platform
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import CLIPBOARD_READ_TIMEOUT, CLIPBOARD_SAMPLE_INTERVAL
from ..logging_config import get_logger

logger = get_logger(__name__, namespace='clipboard')


class ClipboardUnavailable(Exception):
    """Raised by a clipboard reader when no clipboard text can be obtained."""


def _linux_clipboard_commands() -> list[list[str]]:
    return [
        ['wl-paste', '--no-newline'],
        ['xclip', '-selection', 'clipboard', '-o'],
        ['xsel', '--clipboard', '--output'],
    ]


def read_system_clipboard(timeout: float = CLIPBOARD_READ_TIMEOUT) -> str:
    """Read clipboard text using the platform's command line tools.

    Raises:
        ClipboardUnavailable: if no tool produced clipboard text.
    """
    system = platform.system()
    if system == 'Darwin':
        commands = [['pbpaste']]
    elif system == 'Windows':
        commands = [['powershell', '-NoProfile', '-Command', 'Get-Clipboard -Raw']]
    else:
        commands = _linux_clipboard_commands()

    for cmd in commands:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors='replace',
                timeout=timeout,
            )
        except FileNotFoundError:
            continue
        if result.returncode == 0:
            return result.stdout
    raise ClipboardUnavailable(f"No clipboard reader succeeded on {system}")


@dataclass
class ClipboardCache:
    """Last sampled clipboard content."""
    text: str = ''
    sampled_at: Optional[float] = None


class ClipboardSampler:
    """Keeps a cached view of the clipboard, refreshed at most every interval.

    Reads that fail leave the previous text in place, so callers always get a
    (possibly stale) string back.
    """

    def __init__(
        self,
        reader: Callable[[], str] = read_system_clipboard,
        interval: float = CLIPBOARD_SAMPLE_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.reader = reader
        self.interval = interval
        self.clock = clock
        self.cache = ClipboardCache()
        # Failed reads are rate limited too
        self._last_attempt: Optional[float] = None

    def sample(self, now: Optional[float] = None) -> str:
        if now is None:
            now = self.clock()

        if self._last_attempt is not None and now - self._last_attempt < self.interval:
            return self.cache.text

        self._last_attempt = now
        try:
            text = self.reader()
        except (ClipboardUnavailable, OSError, ValueError, subprocess.SubprocessError) as e:
            logger.debug(f"Clipboard read failed, keeping cached text: {e}")
            return self.cache.text

        self.cache.text = text if isinstance(text, str) else ''
        self.cache.sampled_at = now
        return self.cache.text
