"""Activity records built from session snapshots."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..types import ActionType, ActivityRecordPayload
from ..utils import get_current_date, get_current_time, to_utc_iso
from .sessions import FileSession, SessionSnapshot


@dataclass(frozen=True)
class ActivityRecord:
    """One outbound activity record. Immutable once built."""
    username: str
    file_name: str
    file_path: str
    date: str
    time: str
    timestamp: str
    action_type: ActionType
    typed_lines: int
    pasted_lines: int
    editor_version: str
    content_snippet: Optional[str] = None

    @property
    def total_lines(self) -> int:
        return self.typed_lines + self.pasted_lines

    def to_dict(self) -> ActivityRecordPayload:
        payload: ActivityRecordPayload = {
            'username': self.username,
            'fileName': self.file_name,
            'filePath': self.file_path,
            'date': self.date,
            'time': self.time,
            'timestamp': self.timestamp,
            'actionType': self.action_type,
            'typedLines': self.typed_lines,
            'pastedLines': self.pasted_lines,
            'totalLines': self.total_lines,
            'editorVersion': self.editor_version,
        }
        if self.content_snippet is not None:
            payload['contentSnippet'] = self.content_snippet
        return payload


def build_records(
    session: FileSession,
    snapshot: SessionSnapshot,
    username: str,
    editor_version: str,
    include_snippet: bool = False,
    now: datetime | None = None,
) -> list[ActivityRecord]:
    """Turn a snapshot into one record per non-zero category.

    Typed lines go in a 'typing' record and pasted lines in a 'paste' record,
    so the counts across the returned records always add up to the snapshot.
    Deletions ride along as a 'delete' record with zero line counts. Nothing
    is built when no typed or pasted lines were recorded.
    """
    if snapshot.typed_lines == 0 and snapshot.pasted_lines == 0:
        return []

    now = now or datetime.now().astimezone()
    snippet = snapshot.snippets[-1] if include_snippet and snapshot.snippets else None

    def make(action_type: ActionType, typed: int, pasted: int) -> ActivityRecord:
        return ActivityRecord(
            username=username,
            file_name=session.file_name,
            file_path=session.file_path,
            date=get_current_date(now),
            time=get_current_time(now),
            timestamp=to_utc_iso(now),
            action_type=action_type,
            typed_lines=typed,
            pasted_lines=pasted,
            editor_version=editor_version,
            content_snippet=snippet,
        )

    records = []
    if snapshot.typed_lines > 0:
        records.append(make('typing', snapshot.typed_lines, 0))
    if snapshot.pasted_lines > 0:
        records.append(make('paste', 0, snapshot.pasted_lines))
    if snapshot.deleted_lines > 0:
        records.append(make('delete', 0, 0))
    return records
