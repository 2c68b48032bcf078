"""Tests for the per-file session store."""

import pytest

from src.typing_tracker.tracking.classifier import ChangeEvent, classify
from src.typing_tracker.tracking.sessions import FileSession, SessionStore


def typed(lines: int, text: str = 'x') -> ChangeEvent:
    return ChangeEvent(text=text, range_length=0, is_delete=False, is_paste=False, line_count=lines)


def pasted(lines: int, text: str = 'pasted') -> ChangeEvent:
    return ChangeEvent(text=text, range_length=0, is_delete=False, is_paste=True, line_count=lines)


def deleted(lines: int) -> ChangeEvent:
    return ChangeEvent(text='', range_length=lines * 50, is_delete=True, is_paste=False, line_count=lines)


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def session(store):
    return store.get_or_create('/proj/app.py', 'app.py', 100)


class TestGetOrCreate:
    """Tests for SessionStore.get_or_create."""

    def test_creates_zeroed_session(self, store):
        """Test a new session starts with zero counters."""
        session = store.get_or_create('/proj/a.py', 'a.py', 42)

        assert session.file_path == '/proj/a.py'
        assert session.file_name == 'a.py'
        assert session.initial_line_count == 42
        assert session.typed_lines == 0
        assert session.pasted_lines == 0
        assert session.deleted_lines == 0
        assert session.pending_changes is False
        assert len(session.content_snippets) == 0
        assert '/proj/a.py' in store

    def test_returns_existing_session(self, store):
        """Test an existing session is returned and its baseline kept."""
        first = store.get_or_create('/proj/a.py', 'a.py', 42)
        second = store.get_or_create('/proj/a.py', 'a.py', 99)

        assert first is second
        assert second.initial_line_count == 42
        assert len(store) == 1


class TestApply:
    """Tests for SessionStore.apply."""

    def test_typed_change(self, store, session):
        store.apply(session, typed(3))

        assert session.typed_lines == 3
        assert session.pending_changes is True

    def test_pasted_change(self, store, session):
        store.apply(session, pasted(4))

        assert session.pasted_lines == 4
        assert session.typed_lines == 0
        assert session.pending_changes is True

    def test_deleted_change_not_pending(self, store, session):
        """Test deletions alone do not make the session pending."""
        store.apply(session, deleted(2))

        assert session.deleted_lines == 2
        assert session.pending_changes is False

    def test_pending_invariant_across_changes(self, store, session):
        """Test pending_changes tracks typed + pasted after every change."""
        changes = [deleted(1), typed(0, text=''), typed(1), deleted(3), pasted(2)]
        for change in changes:
            store.apply(session, change)
            assert session.pending_changes == (session.typed_lines + session.pasted_lines > 0)

    def test_updates_last_activity(self, store, session):
        before = session.last_activity
        store.apply(session, typed(1))

        assert session.last_activity >= before


class TestContentSnippets:
    """Tests for snippet capture."""

    def test_snippet_is_normalized(self, store, session):
        store.apply(session, typed(2, text='  def   foo():\n\treturn 1  '))

        assert list(session.content_snippets) == ['def foo(): return 1']

    def test_long_snippet_truncated(self, store, session):
        store.apply(session, typed(1, text='a' * 150))

        snippet = session.content_snippets[0]
        assert snippet == 'a' * 100 + '...'

    def test_blank_text_adds_no_snippet(self, store, session):
        store.apply(session, typed(1, text='\n   \n'))
        store.apply(session, deleted(1))

        assert len(session.content_snippets) == 0

    def test_capacity_is_five(self, store, session):
        """Test a sixth snippet evicts the oldest."""
        for i in range(6):
            store.apply(session, typed(1, text=f'snippet {i}'))

        assert len(session.content_snippets) == 5
        assert list(session.content_snippets) == [f'snippet {i}' for i in range(1, 6)]


class TestReconcile:
    """Tests for SessionStore.reconcile."""

    def test_typed_only_scenario(self, store):
        """Test 10 typed lines reconciled against a +15 line delta."""
        session = store.get_or_create('/proj/a.py', 'a.py', 100)
        session.typed_lines = 10
        session.sync_pending()

        store.reconcile(session, 115)

        assert session.typed_lines == 15
        assert session.pasted_lines == 0
        assert session.initial_line_count == 115

    def test_same_line_count_is_idempotent(self, store, session):
        """Test reconciling at the baseline leaves counters alone."""
        store.apply(session, typed(7))
        store.apply(session, pasted(3))

        store.reconcile(session, session.initial_line_count)

        assert session.typed_lines == 7
        assert session.pasted_lines == 3

    def test_negative_delta_leaves_counters(self, store, session):
        """Test a shrinking file keeps the tracked counters."""
        store.apply(session, typed(4))

        store.reconcile(session, 90)

        assert session.typed_lines == 4
        assert session.initial_line_count == 90

    def test_untracked_delta_counts_as_typed(self, store, session):
        """Test a positive delta with nothing tracked becomes typed lines."""
        store.reconcile(session, 107)

        assert session.typed_lines == 7
        assert session.pasted_lines == 0
        assert session.pending_changes is True

    def test_ratio_preserved(self, store, session):
        """Test the typed:pasted split follows the tracked ratio."""
        session.typed_lines = 3
        session.pasted_lines = 1

        store.reconcile(session, 108)

        assert session.typed_lines == 6
        assert session.pasted_lines == 2

    @pytest.mark.parametrize('typed_lines,pasted_lines,delta', [
        (1, 1, 3),
        (1, 2, 5),
        (2, 3, 7),
        (5, 5, 1),
        (1, 6, 10),
        (3, 3, 9),
    ])
    def test_rounding_drift_bounded(self, store, typed_lines, pasted_lines, delta):
        """Test independent rounding is off from the delta by at most one."""
        session = store.get_or_create('/proj/r.py', 'r.py', 0)
        session.typed_lines = typed_lines
        session.pasted_lines = pasted_lines

        store.reconcile(session, delta)

        assert abs(session.typed_lines + session.pasted_lines - delta) <= 1

    def test_single_line_even_split_not_lost(self, store):
        """Test a +1 delta split 1:1 rounds up instead of zeroing both shares."""
        session = store.get_or_create('/proj/r.py', 'r.py', 0)
        session.typed_lines = 1
        session.pasted_lines = 1

        store.reconcile(session, 1)

        assert session.typed_lines == 1
        assert session.pasted_lines == 1
        assert session.pending_changes is True

    def test_even_split_of_odd_delta(self, store):
        """Test half shares of an odd delta both round up."""
        session = store.get_or_create('/proj/r.py', 'r.py', 0)
        session.typed_lines = 2
        session.pasted_lines = 2

        store.reconcile(session, 5)

        assert session.typed_lines == 3
        assert session.pasted_lines == 3

    def test_reconcile_with_classified_changes(self, store):
        """Test reconciliation after real classification."""
        session = store.get_or_create('/proj/b.py', 'b.py', 10)
        store.apply(session, classify({'text': 'a\nb\nc\nd', 'rangeLength': 0}, 'a\nb\nc\nd'))

        store.reconcile(session, 13)

        assert session.pasted_lines == 3
        assert session.typed_lines == 0


class TestResetAfterFlush:
    """Tests for SessionStore.snapshot and reset."""

    def test_reset_clears_sent_counts(self, store, session):
        store.apply(session, typed(3, text='one'))
        store.apply(session, pasted(2, text='two'))
        store.observe_line_count(session, 105)
        snapshot = store.snapshot(session)

        store.reset(session, snapshot)

        assert session.typed_lines == 0
        assert session.pasted_lines == 0
        assert session.pending_changes is False
        assert len(session.content_snippets) == 0
        assert session.initial_line_count == 105

    def test_reset_keeps_changes_made_after_snapshot(self, store, session):
        """Test changes applied while a send was in flight survive."""
        store.apply(session, typed(3, text='before'))
        snapshot = store.snapshot(session)
        store.apply(session, typed(2, text='after'))

        store.reset(session, snapshot)

        assert session.typed_lines == 2
        assert session.pending_changes is True
        assert list(session.content_snippets) == ['after']

    def test_reset_after_flush_avoids_double_count_on_save(self, store, session):
        """Test lines already flushed are not re-attributed at the next save."""
        store.apply(session, typed(10))
        store.observe_line_count(session, 110)
        store.reset(session, store.snapshot(session))

        store.apply(session, typed(5))
        store.observe_line_count(session, 115)
        store.reconcile(session, 115)

        assert session.typed_lines == 5

    def test_reset_does_not_undo_reconcile_baseline(self, store, session):
        """Test a reconcile during the send keeps its new baseline."""
        store.apply(session, typed(2))
        store.observe_line_count(session, 102)
        snapshot = store.snapshot(session)
        store.reconcile(session, 104)

        store.reset(session, snapshot)

        assert session.initial_line_count == 104
        assert session.typed_lines == 2


class TestRemove:
    """Tests for SessionStore.remove."""

    def test_remove_existing(self, store, session):
        removed = store.remove(session.file_path)

        assert removed is session
        assert session.file_path not in store
        assert store.get(session.file_path) is None

    def test_remove_missing(self, store):
        assert store.remove('/nope') is None


class TestFileSession:
    """Tests for FileSession helpers."""

    def test_to_dict(self):
        session = FileSession(file_path='/p/x.py', file_name='x.py', initial_line_count=5)
        data = session.to_dict()

        assert data['filePath'] == '/p/x.py'
        assert data['initialLineCount'] == 5
        assert data['pendingChanges'] is False
        assert data['contentSnippets'] == []
