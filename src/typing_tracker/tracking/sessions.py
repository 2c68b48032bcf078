"""Per-file accumulation of classified changes.

The SessionStore owns every FileSession, keyed by file path. Sessions are
created on the first tracked change and removed when the editor closes the
file. All methods assume a single event-processing context; they do no
locking of their own.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Optional

from ..config import SNIPPET_CAPACITY
from ..logging_config import get_logger
from ..utils import extract_snippet
from .classifier import ChangeEvent

logger = get_logger(__name__, namespace='session')


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


@dataclass
class FileSession:
    """Accumulated, unflushed edit counters for one open file."""

    file_path: str
    file_name: str
    initial_line_count: int = 0
    typed_lines: int = 0
    pasted_lines: int = 0
    deleted_lines: int = 0
    content_snippets: deque = field(default_factory=lambda: deque(maxlen=SNIPPET_CAPACITY))
    session_start: datetime = field(default_factory=_now)
    last_activity: datetime = field(default_factory=_now)
    pending_changes: bool = False
    # Most recent line count reported by the editor
    last_line_count: int = 0
    # Total snippets ever pushed, used to tell sent snippets from newer ones
    snippet_seq: int = 0

    def __post_init__(self):
        if not self.last_line_count:
            self.last_line_count = self.initial_line_count

    @property
    def tracked_lines(self) -> int:
        return self.typed_lines + self.pasted_lines

    def sync_pending(self):
        self.pending_changes = self.tracked_lines > 0

    def to_dict(self) -> dict:
        return {
            'filePath': self.file_path,
            'fileName': self.file_name,
            'typedLines': self.typed_lines,
            'pastedLines': self.pasted_lines,
            'deletedLines': self.deleted_lines,
            'initialLineCount': self.initial_line_count,
            'contentSnippets': list(self.content_snippets),
            'sessionStart': self.session_start.isoformat(),
            'lastActivity': self.last_activity.isoformat(),
            'pendingChanges': self.pending_changes,
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Counters captured when a flush is built."""
    typed_lines: int
    pasted_lines: int
    deleted_lines: int
    snippets: tuple[str, ...]
    snippet_seq: int
    line_count: int
    initial_line_count: int


class SessionStore:
    """Keyed collection of FileSession entries."""

    def __init__(self):
        self._sessions: dict[str, FileSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, file_path: str) -> bool:
        return file_path in self._sessions

    def __iter__(self) -> Iterator[FileSession]:
        return iter(list(self._sessions.values()))

    def get(self, file_path: str) -> Optional[FileSession]:
        return self._sessions.get(file_path)

    def get_or_create(self, file_path: str, file_name: str, initial_line_count: int) -> FileSession:
        """Return the session for file_path, creating it with zeroed counters.

        initial_line_count is the editor's line count at creation time and is
        ignored for an existing session.
        """
        session = self._sessions.get(file_path)
        if session is None:
            session = FileSession(
                file_path=file_path,
                file_name=file_name,
                initial_line_count=initial_line_count,
            )
            self._sessions[file_path] = session
            logger.debug(f"Started session for {file_path} at {initial_line_count} lines")
        return session

    def apply(self, session: FileSession, change: ChangeEvent):
        """Add a classified change to the session's counters."""
        if change.is_delete:
            session.deleted_lines += change.line_count
        elif change.is_paste:
            session.pasted_lines += change.line_count
        else:
            session.typed_lines += change.line_count

        if change.text.strip():
            session.content_snippets.append(extract_snippet(change.text))
            session.snippet_seq += 1

        session.last_activity = _now()
        session.sync_pending()

    def observe_line_count(self, session: FileSession, line_count: int):
        session.last_line_count = line_count

    def reconcile(self, session: FileSession, current_line_count: int):
        """Correct typed/pasted counters against the editor's line count.

        A positive net delta replaces the heuristic totals, split in the
        tracked typed:pasted ratio. Each share is rounded half up on its own,
        so the sum may be off by one, but a +1 delta split evenly still counts.
        With nothing tracked the whole delta counts as typed. A zero or
        negative delta leaves the counters alone; those lines are covered by
        the deletion path.
        """
        delta = current_line_count - session.initial_line_count
        tracked = session.tracked_lines

        if delta > 0:
            if tracked > 0:
                typed = _round_half_up(delta * session.typed_lines / tracked)
                pasted = _round_half_up(delta * session.pasted_lines / tracked)
            else:
                typed, pasted = delta, 0

            if (typed, pasted) != (session.typed_lines, session.pasted_lines):
                logger.debug(
                    f"Reconciled {session.file_path}: typed {session.typed_lines}->{typed}, "
                    f"pasted {session.pasted_lines}->{pasted} (delta {delta})"
                )
            session.typed_lines = typed
            session.pasted_lines = pasted

        session.initial_line_count = current_line_count
        session.last_line_count = current_line_count
        session.sync_pending()

    def snapshot(self, session: FileSession) -> SessionSnapshot:
        return SessionSnapshot(
            typed_lines=session.typed_lines,
            pasted_lines=session.pasted_lines,
            deleted_lines=session.deleted_lines,
            snippets=tuple(session.content_snippets),
            snippet_seq=session.snippet_seq,
            line_count=session.last_line_count,
            initial_line_count=session.initial_line_count,
        )

    def reset(self, session: FileSession, sent: SessionSnapshot):
        """Remove counts that were confirmed delivered.

        Changes applied while the send was in flight stay in the session. The
        reconciliation baseline moves to the line count the delivered counts
        were measured against, unless a reconcile already moved it.
        """
        session.typed_lines = max(0, session.typed_lines - sent.typed_lines)
        session.pasted_lines = max(0, session.pasted_lines - sent.pasted_lines)
        session.deleted_lines = max(0, session.deleted_lines - sent.deleted_lines)

        newer = session.snippet_seq - sent.snippet_seq
        kept = list(session.content_snippets)[-newer:] if newer > 0 else []
        session.content_snippets.clear()
        session.content_snippets.extend(kept)

        if session.initial_line_count == sent.initial_line_count:
            session.initial_line_count = sent.line_count

        session.sync_pending()

    def pending(self) -> list[FileSession]:
        return [s for s in self._sessions.values() if s.pending_changes]

    def remove(self, file_path: str) -> Optional[FileSession]:
        session = self._sessions.pop(file_path, None)
        if session is not None:
            logger.debug(f"Removed session for {file_path}")
        return session

    def clear(self):
        self._sessions.clear()
