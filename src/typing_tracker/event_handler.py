"""Editor event handling for typing and paste tracking.

The EventHandler is the entry point for the editor's change, save and close
notifications. It classifies each change, updates the file's session and
hands flushing to the Flusher. Events are expected one at a time from a
single event loop; flush sends run as background tasks.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional

import httpx

from .config import ConfigManager, TrackerConfig
from .logging_config import get_logger
from .notices import Notifier
from .services.api_client import ApiClient
from .tracking.classifier import classify
from .tracking.clipboard import ClipboardSampler, read_system_clipboard
from .tracking.flusher import Flusher
from .tracking.sessions import SessionStore
from .utils import file_name_from_path, should_track_file

logger = get_logger(__name__, namespace='agent')


@dataclass
class TrackerContext:
    """Process-wide collaborators, built once at startup."""
    config_manager: ConfigManager
    notifier: Notifier
    api_client: ApiClient
    sampler: ClipboardSampler
    store: SessionStore = field(default_factory=SessionStore)


def create_context(
    config_manager: Optional[ConfigManager] = None,
    clipboard_reader: Callable[[], str] = read_system_clipboard,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TrackerContext:
    config_manager = config_manager or ConfigManager()
    notifier = Notifier()
    return TrackerContext(
        config_manager=config_manager,
        notifier=notifier,
        api_client=ApiClient(config_manager, notifier=notifier, transport=http_transport),
        sampler=ClipboardSampler(reader=clipboard_reader),
    )


class EventHandler:
    """Tracks typing and paste activity for open files."""

    def __init__(self, context: TrackerContext, flusher: Optional[Flusher] = None):
        self.context = context
        self.config_manager = context.config_manager
        self.store = context.store
        self.sampler = context.sampler
        self.flusher = flusher or Flusher(
            context.store,
            context.api_client,
            context.config_manager,
        )
        self.config_manager.add_listener(self.on_config_changed)

    async def handle_change(
        self,
        file_path: str,
        file_name: Optional[str],
        current_line_count: int,
        raw_changes: Iterable[Mapping],
    ) -> bool:
        """Process one editor change notification. Returns True if tracked."""
        if not self.config_manager.is_enabled():
            return False
        if not should_track_file(file_path):
            return False

        raw_changes = list(raw_changes)
        if not raw_changes:
            return False

        clipboard_text = await asyncio.to_thread(self.sampler.sample)

        session = self.store.get_or_create(
            file_path,
            file_name or file_name_from_path(file_path),
            current_line_count,
        )
        for raw_change in raw_changes:
            self.store.apply(session, classify(raw_change, clipboard_text))
        self.store.observe_line_count(session, current_line_count)

        self.flusher.schedule_flush()
        return True

    async def handle_save(self, file_path: str, current_line_count: int) -> Optional[asyncio.Task]:
        """Reconcile the file's session and flush it in the background."""
        session = self.store.get(file_path)
        if session is None:
            return None

        self.store.reconcile(session, current_line_count)
        if not session.pending_changes:
            return None
        return self.flusher.spawn(self.flusher.flush_one(session))

    async def handle_close(self, file_path: str, current_line_count: int) -> Optional[asyncio.Task]:
        """Reconcile, make a final flush attempt and drop the session."""
        session = self.store.remove(file_path)
        if session is None:
            return None

        self.store.reconcile(session, current_line_count)
        if not session.pending_changes:
            return None
        return self.flusher.spawn(self.flusher.flush_one(session))

    def on_config_changed(self, config: TrackerConfig):
        """Rebuild derived client state after a settings change."""
        self.context.api_client.refresh_client(config)
        self.flusher.set_debounce_interval(config.debounce_interval_ms)

    def stats(self) -> dict:
        return {
            'sessions': [s.to_dict() for s in self.store],
            'pendingSessions': len(self.store.pending()),
            'flushScheduled': self.flusher.timer_armed,
        }

    async def dispose(self) -> bool:
        """Force-flush everything pending before teardown."""
        ok = await self.flusher.shutdown()
        self.store.clear()
        return ok
