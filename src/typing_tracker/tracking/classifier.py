"""Classification of raw editor changes as typed, pasted or deleted.

No editor API reliably says "this insertion came from a paste", so the
classifier works from the shape of the change and the clipboard contents.
Paste detection favors precision: small clipboard-matching insertions are
counted as typed, and line-count reconciliation in the session store
corrects the drift later.
"""

from dataclasses import dataclass
from typing import Mapping

from ..config import DELETE_CHARS_PER_LINE, PASTE_MIN_CHARS, PASTE_MIN_NEWLINES
from ..logging_config import get_logger
from ..utils import count_lines

logger = get_logger(__name__, namespace='classifier')


@dataclass(frozen=True)
class ChangeEvent:
    """A classified content change."""
    text: str
    range_length: int
    is_delete: bool
    is_paste: bool
    line_count: int

    @property
    def kind(self) -> str:
        if self.is_delete:
            return 'delete'
        if self.is_paste:
            return 'paste'
        return 'typing'


def estimate_deleted_lines(range_length: int) -> int:
    """Rough line count for a deletion of range_length characters.

    Only the removed character count is observable, so this is a proxy of
    one line per DELETE_CHARS_PER_LINE characters, never less than one.
    """
    return max(1, range_length // DELETE_CHARS_PER_LINE)


def matches_clipboard(text: str, clipboard_text: str) -> bool:
    """Check whether inserted text plausibly came from the clipboard.

    Tolerates trailing whitespace and partial selections: the clipboard may
    equal the text, contain it, or (trimmed) be contained in it. An empty
    clipboard never matches.
    """
    if not clipboard_text:
        return False
    if clipboard_text == text or text in clipboard_text:
        return True
    trimmed = clipboard_text.strip()
    return bool(trimmed) and trimmed in text


def looks_like_paste_block(text: str) -> bool:
    """Size/shape gate: several lines or a long run of characters."""
    return text.count('\n') > PASTE_MIN_NEWLINES or len(text) > PASTE_MIN_CHARS


def classify(raw_change: Mapping, clipboard_text: str = '') -> ChangeEvent:
    """Classify one raw change (``{'text': ..., 'rangeLength': ...}``).

    Replacements (rangeLength > 0) are never pastes so autocomplete and
    refactor edits are not mistaken for pasted content.
    """
    text = raw_change.get('text') or ''
    range_length = max(0, int(raw_change.get('rangeLength') or 0))

    is_delete = range_length > 0 and len(text) == 0

    if is_delete:
        line_count = estimate_deleted_lines(range_length)
    else:
        line_count = count_lines(text)

    is_paste = (
        not is_delete
        and range_length == 0
        and matches_clipboard(text, clipboard_text)
        and looks_like_paste_block(text)
    )

    event = ChangeEvent(
        text=text,
        range_length=range_length,
        is_delete=is_delete,
        is_paste=is_paste,
        line_count=line_count,
    )
    logger.debug(f"Classified change as {event.kind}: {line_count} line(s)")
    return event
