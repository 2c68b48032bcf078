"""Type definitions for the Typing Tracker.

TypedDict definitions documenting the JSON shapes exchanged with the editor
and the aggregation backend.
"""

from typing import Literal, TypedDict
from typing_extensions import NotRequired


ActionType = Literal['typing', 'paste', 'delete', 'cut']


class RawChange(TypedDict):
    """One content change as reported by the editor."""
    text: str
    rangeLength: int


class ActivityRecordPayload(TypedDict):
    """Wire form of an activity record sent to the backend."""
    username: str
    fileName: str
    filePath: str
    date: str  # YYYY-MM-DD
    time: str  # HH:MM:SS
    timestamp: str  # ISO-8601 instant
    actionType: ActionType
    typedLines: int
    pastedLines: int
    totalLines: int
    contentSnippet: NotRequired[str]
    editorVersion: str


class UserActivitySummary(TypedDict):
    """Per-user, per-day totals kept by the backend."""
    username: str
    date: str
    totalTypedLines: int
    totalPastedLines: int
    typingToPastingRatio: float
    totalFilesEdited: int


class EditorChangeMessage(TypedDict):
    """A 'change' message on the agent's editor WebSocket."""
    type: Literal['change']
    filePath: str
    fileName: NotRequired[str]
    lineCount: int
    changes: list[RawChange]


class EditorDocumentMessage(TypedDict):
    """A 'save' or 'close' message on the agent's editor WebSocket."""
    type: Literal['save', 'close']
    filePath: str
    lineCount: int
