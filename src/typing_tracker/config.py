"""Configuration module for the Typing Tracker.

Centralizes the tracker's constants and the settings manager that reads
the user's settings file and environment overrides.
"""

import asyncio
import json
import os
import subprocess
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable

from .logging_config import get_logger

logger = get_logger(__name__, namespace='config')


# ============================================================================
# Path Configuration
# ============================================================================

# JSON settings file read by ConfigManager
SETTINGS_FILE = Path(os.getenv(
    "TT_SETTINGS_FILE",
    str(Path.home() / ".config" / "typing-tracker" / "settings.json")
))

# SQLite database used by the aggregation backend
DB_PATH = Path(os.getenv(
    "TT_DB_PATH",
    str(Path.home() / ".config" / "typing-tracker" / "activity.db")
))


# ============================================================================
# Tracker Defaults
# ============================================================================

DEFAULT_API_ENDPOINT = "http://localhost:3000/api"

# Quiet period before accumulated sessions are flushed (milliseconds)
DEFAULT_DEBOUNCE_INTERVAL_MS = 2000

# Editor identification sent with every record
EDITOR_VERSION = os.getenv("TT_EDITOR_VERSION", "unknown")


# ============================================================================
# Classification Thresholds
# ============================================================================

# Clipboard is re-read at most this often (seconds)
CLIPBOARD_SAMPLE_INTERVAL = 0.5

# Timeout for a single clipboard read subprocess (seconds)
CLIPBOARD_READ_TIMEOUT = 1.0

# Characters removed per estimated deleted line
DELETE_CHARS_PER_LINE = 50

# Inserted text longer than this may be a paste
PASTE_MIN_CHARS = 100

# Inserted text with more newlines than this may be a paste
PASTE_MIN_NEWLINES = 1


# ============================================================================
# Session Configuration
# ============================================================================

SNIPPET_CAPACITY = 5
SNIPPET_MAX_LENGTH = 100


# ============================================================================
# Server Configuration
# ============================================================================

# HTTP timeout for backend requests (seconds)
HTTP_TIMEOUT = 10.0

# Local editor agent
AGENT_HOST = "127.0.0.1"
AGENT_PORT = 8765

# Aggregation backend
BACKEND_HOST = "127.0.0.1"
BACKEND_PORT = 3000


@dataclass
class TrackerConfig:
    """Snapshot of the user-facing tracker settings."""
    username: str = ''
    api_endpoint: str = DEFAULT_API_ENDPOINT
    enabled: bool = True
    track_content_snippets: bool = False
    debounce_interval_ms: int = DEFAULT_DEBOUNCE_INTERVAL_MS


# settings file key -> (TrackerConfig field, environment override)
_SETTING_KEYS = {
    'username': ('username', 'TT_USERNAME'),
    'apiEndpoint': ('api_endpoint', 'TT_API_ENDPOINT'),
    'enabled': ('enabled', 'TT_ENABLED'),
    'trackContentSnippets': ('track_content_snippets', 'TT_TRACK_CONTENT_SNIPPETS'),
    'debounceInterval': ('debounce_interval_ms', 'TT_DEBOUNCE_INTERVAL'),
}


def _coerce(field_name: str, value):
    """Convert a raw settings value to the type of the TrackerConfig field."""
    default = getattr(TrackerConfig(), field_name)
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ('1', 'true', 'yes', 'on')
        return bool(value)
    if isinstance(default, int):
        return int(value)
    return str(value)


class ConfigManager:
    """Reads tracker settings and notifies listeners when they change.

    Settings come from a JSON file (camelCase keys, the same names the editor
    extension uses) with ``TT_*`` environment variables taking precedence.
    """

    def __init__(self, settings_file: Path | None = None):
        self.settings_file = Path(settings_file) if settings_file else SETTINGS_FILE
        self._listeners: list[Callable[[TrackerConfig], None]] = []
        # git / OS username, resolved once per loaded config
        self._fallback_username: str | None = None
        self._config = self._load()

    def _read_settings_file(self) -> dict:
        if not self.settings_file.exists():
            return {}
        try:
            data = json.loads(self.settings_file.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read settings from {self.settings_file}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.settings_file}: not a JSON object")
            return {}
        return data

    def _load(self) -> TrackerConfig:
        values = {}
        raw = self._read_settings_file()
        for key, (field_name, env_var) in _SETTING_KEYS.items():
            value = os.environ.get(env_var, raw.get(key))
            if value is None:
                continue
            try:
                values[field_name] = _coerce(field_name, value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid value for {key}: {value!r}")
        return TrackerConfig(**values)

    def add_listener(self, callback: Callable[[TrackerConfig], None]):
        """Register a callback invoked with the new config after a change."""
        self._listeners.append(callback)

    def refresh(self) -> bool:
        """Re-read settings. Returns True if anything changed."""
        new_config = self._load()
        changed = new_config != self._config
        self._config = new_config
        self._fallback_username = None
        if changed:
            logger.info("Configuration updated")
            for callback in list(self._listeners):
                callback(new_config)
        return changed

    def get_config(self) -> TrackerConfig:
        return self._config

    def get_username(self) -> str:
        """Configured username, falling back to git and then the OS user.

        The fallback runs a git subprocess the first time it is needed and is
        cached until the next refresh().
        """
        username = self._config.username
        if username and username.strip():
            return username
        if self._fallback_username is None:
            self._fallback_username = self._resolve_fallback_username()
        return self._fallback_username

    async def resolve_username(self) -> str:
        """get_username() run off the event loop, for use from coroutines."""
        return await asyncio.to_thread(self.get_username)

    def _resolve_fallback_username(self) -> str:
        try:
            result = subprocess.run(
                ['git', 'config', '--get', 'user.name'],
                capture_output=True,
                text=True,
                timeout=2,
            )
            git_username = result.stdout.strip()
            if result.returncode == 0 and git_username:
                return git_username
        except (OSError, subprocess.SubprocessError):
            pass

        env_user = os.environ.get('USER') or os.environ.get('USERNAME')
        if env_user and env_user.strip():
            return env_user

        return ''

    def get_api_endpoint(self) -> str:
        return self._config.api_endpoint

    def is_enabled(self) -> bool:
        return self._config.enabled

    def toggle_enabled(self) -> bool:
        """Flip the enabled flag, persist it and return the resulting state.

        A ``TT_ENABLED`` environment override still wins over the file.
        """
        raw = self._read_settings_file()
        raw['enabled'] = not self.is_enabled()
        self.settings_file.parent.mkdir(parents=True, exist_ok=True)
        self.settings_file.write_text(json.dumps(raw, indent=2))
        self.refresh()
        return self.is_enabled()

    def validate_config(self) -> tuple[bool, list[str]]:
        """Check that the settings needed for useful records are present."""
        errors = []
        if not self._config.username or not self._config.username.strip():
            errors.append('Username is not configured. Please set username in settings.')
        if not self._config.api_endpoint or not self._config.api_endpoint.strip():
            errors.append('API endpoint is not configured.')
        return len(errors) == 0, errors

    def to_dict(self) -> dict:
        return asdict(self._config)
