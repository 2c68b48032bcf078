"""Change classification and session aggregation.

This package contains modules for:
- Clipboard sampling (clipboard.py)
- Change classification (classifier.py)
- Per-file session accumulation and reconciliation (sessions.py)
- Activity record construction (records.py)
- Debounced flushing to the backend (flusher.py)

Import from here for a clean API:
    from src.typing_tracker.tracking import classify, SessionStore, Flusher
"""

from .clipboard import (
    ClipboardCache,
    ClipboardSampler,
    ClipboardUnavailable,
    read_system_clipboard,
)

from .classifier import (
    ChangeEvent,
    classify,
    estimate_deleted_lines,
    looks_like_paste_block,
    matches_clipboard,
)

from .sessions import (
    FileSession,
    SessionSnapshot,
    SessionStore,
)

from .records import (
    ActivityRecord,
    build_records,
)

from .flusher import (
    Flusher,
    Transport,
)

__all__ = [
    # Clipboard
    'ClipboardCache',
    'ClipboardSampler',
    'ClipboardUnavailable',
    'read_system_clipboard',
    # Classification
    'ChangeEvent',
    'classify',
    'estimate_deleted_lines',
    'looks_like_paste_block',
    'matches_clipboard',
    # Sessions
    'FileSession',
    'SessionSnapshot',
    'SessionStore',
    # Records
    'ActivityRecord',
    'build_records',
    # Flushing
    'Flusher',
    'Transport',
]
