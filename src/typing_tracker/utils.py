"""Shared utilities for the Typing Tracker.

Text measurement, date formatting and path filtering helpers used by the
tracking core and the backend.
"""

import re
from datetime import datetime, timezone

from .config import SNIPPET_MAX_LENGTH

_LINE_SPLIT = re.compile(r'\r?\n')
_WHITESPACE = re.compile(r'\s+')

# Paths matching any of these are never tracked
EXCLUDE_PATTERNS = [
    re.compile(r'node_modules'),
    re.compile(r'\.git/'),
    re.compile(r'\.vscode'),
    re.compile(r'\.next'),
    re.compile(r'(?:^|/)(?:dist|build|out)/'),
    re.compile(r'\.log$'),
    re.compile(r'\.lock$'),
]


def count_lines(text: str) -> int:
    """Count lines in a text string.

    Returns the number of segments produced by splitting on newlines, or 0
    for empty input. A trailing newline therefore counts as an extra line.
    """
    if not text:
        return 0
    return len(_LINE_SPLIT.split(text))


def extract_snippet(text: str, max_length: int = SNIPPET_MAX_LENGTH) -> str:
    """Collapse whitespace and truncate text to max_length (plus '...')."""
    if not text:
        return ''
    snippet = _WHITESPACE.sub(' ', text).strip()
    if len(snippet) > max_length:
        return snippet[:max_length] + '...'
    return snippet


def get_current_date(now: datetime | None = None) -> str:
    """Local date in YYYY-MM-DD format."""
    now = now or datetime.now().astimezone()
    return now.strftime('%Y-%m-%d')


def get_current_time(now: datetime | None = None) -> str:
    """Local time in HH:MM:SS format."""
    now = now or datetime.now().astimezone()
    return now.strftime('%H:%M:%S')


def to_utc_iso(now: datetime) -> str:
    """ISO-8601 instant in UTC for an aware or naive-local datetime."""
    return now.astimezone(timezone.utc).isoformat()


def should_track_file(file_path: str) -> bool:
    """Check if a file should be tracked (excludes build output, VCS and logs)."""
    normalized = file_path.replace('\\', '/')
    return not any(pattern.search(normalized) for pattern in EXCLUDE_PATTERNS)


def file_name_from_path(file_path: str) -> str:
    """Display name for a path, 'unknown' when the path has no final part."""
    name = re.split(r'[\\/]', file_path)[-1]
    return name or 'unknown'


def calculate_ratio(typed: int, pasted: int) -> float:
    """Typing to pasting ratio as stored in daily summaries.

    When nothing was pasted the ratio is the typed count itself.
    """
    if pasted == 0:
        return float(typed)
    return round(typed / pasted, 2)
