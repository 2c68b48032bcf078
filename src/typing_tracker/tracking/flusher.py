"""Debounced delivery of session counters to the backend.

Typing produces change events every few tens of milliseconds, so flushes are
coalesced behind a single re-armable timer. Counters are only cleared after
the transport confirms delivery; a failed send leaves the session untouched
and the next trigger retries with the same or larger counts.
"""

import asyncio
from typing import Optional, Protocol

from ..config import EDITOR_VERSION, ConfigManager
from ..logging_config import get_logger
from .records import ActivityRecord, build_records
from .sessions import FileSession, SessionStore

logger = get_logger(__name__, namespace='flush')


class Transport(Protocol):
    async def send(self, record: ActivityRecord) -> bool: ...

    async def send_batch(self, records: list[ActivityRecord]) -> bool: ...


class Flusher:
    """Schedules and performs flushes of pending sessions."""

    def __init__(
        self,
        store: SessionStore,
        transport: Transport,
        config_manager: ConfigManager,
        editor_version: str = EDITOR_VERSION,
        debounce_interval_ms: Optional[int] = None,
    ):
        self.store = store
        self.transport = transport
        self.config_manager = config_manager
        self.editor_version = editor_version
        if debounce_interval_ms is None:
            debounce_interval_ms = config_manager.get_config().debounce_interval_ms
        self.debounce_interval_ms = debounce_interval_ms

        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        # file path -> future resolved when that file's current flush ends
        self._in_flight: dict[str, asyncio.Future] = {}

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    @property
    def background_tasks(self) -> set[asyncio.Task]:
        return set(self._tasks)

    def set_debounce_interval(self, debounce_interval_ms: int):
        """Takes effect the next time the timer is armed."""
        self.debounce_interval_ms = debounce_interval_ms

    def schedule_flush(self):
        """(Re)arm the debounce timer; only the latest call fires."""
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.debounce_interval_ms / 1000, self._on_timer)

    def cancel(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self):
        self._timer = None
        self.spawn(self.flush_all())

    def spawn(self, coro) -> asyncio.Task:
        """Run a flush in the background without blocking event handling."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background flush failed; counters kept for retry", exc_info=exc)

    async def flush_all(self) -> bool:
        """Flush every session with pending changes. True if all succeeded."""
        all_ok = True
        for session in self.store.pending():
            try:
                ok = await self.flush_one(session)
            except Exception:
                logger.exception(f"Flush of {session.file_path} raised; counters kept for retry")
                ok = False
            all_ok = all_ok and ok
        return all_ok

    async def flush_one(self, session: FileSession) -> bool:
        """Serialize one session into records and send them.

        Returns True when there was nothing to send or delivery succeeded.
        Flushes of the same file never overlap; a second call waits for the
        first to finish and then sends whatever is left.
        """
        loop = asyncio.get_running_loop()
        while session.file_path in self._in_flight:
            await asyncio.wait([self._in_flight[session.file_path]])

        if session.typed_lines == 0 and session.pasted_lines == 0:
            return True

        done = loop.create_future()
        self._in_flight[session.file_path] = done
        try:
            return await self._send(session)
        finally:
            done.set_result(None)
            if self._in_flight.get(session.file_path) is done:
                del self._in_flight[session.file_path]

    async def _send(self, session: FileSession) -> bool:
        config = self.config_manager.get_config()
        snapshot = self.store.snapshot(session)
        records = build_records(
            session,
            snapshot,
            username=await self.config_manager.resolve_username(),
            editor_version=self.editor_version,
            include_snippet=config.track_content_snippets,
        )

        if len(records) == 1:
            success = await self.transport.send(records[0])
        else:
            success = await self.transport.send_batch(records)

        if not success:
            logger.warning(
                f"Flush of {session.file_path} failed; keeping "
                f"{snapshot.typed_lines} typed / {snapshot.pasted_lines} pasted lines for retry"
            )
            return False

        self.store.reset(session, snapshot)
        logger.info(
            f"Flushed {session.file_name}: {snapshot.typed_lines} typed, "
            f"{snapshot.pasted_lines} pasted, {snapshot.deleted_lines} deleted"
        )
        return True

    async def shutdown(self) -> bool:
        """Cancel the timer, let running flushes finish, then force-flush."""
        self.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        return await self.flush_all()
