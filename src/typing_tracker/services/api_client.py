"""HTTP client for the aggregation backend.

Sends activity records and reads summaries. Every call reports success as a
boolean (or None for reads); errors are logged and surfaced as notices, never
raised to the tracking core. There is no retry queue here: a failed send
leaves the session counters in place for the next flush.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from ..config import HTTP_TIMEOUT, ConfigManager, TrackerConfig
from ..logging_config import get_logger
from ..notices import Notifier
from ..tracking.records import ActivityRecord
from ..types import UserActivitySummary

logger = get_logger(__name__, namespace='transport')


class ApiClient:
    """Async transport to the backend's /activity endpoints."""

    def __init__(
        self,
        config_manager: ConfigManager,
        notifier: Optional[Notifier] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT,
    ):
        self.config_manager = config_manager
        self.notifier = notifier or Notifier()
        self.timeout = timeout
        # Injected transport (tests use httpx.MockTransport)
        self._transport = transport
        self.client = self._create_client()
        self._stale_clients: list[httpx.AsyncClient] = []
        # Requests currently running on each client
        self._in_use: dict[httpx.AsyncClient, int] = {}

    def _create_client(self) -> httpx.AsyncClient:
        config = self.config_manager.get_config()
        return httpx.AsyncClient(
            base_url=config.api_endpoint.rstrip('/'),
            timeout=self.timeout,
            headers={'Content-Type': 'application/json'},
            transport=self._transport,
        )

    def refresh_client(self, config: Optional[TrackerConfig] = None):
        """Rebuild the HTTP client after a configuration change.

        The old client may still have a request in flight, so it is closed
        once its last request finishes (or in aclose()).
        """
        self._stale_clients.append(self.client)
        self.client = self._create_client()
        logger.info(f"API client now targets {self.client.base_url}")

    async def aclose(self):
        for client in self._stale_clients:
            await client.aclose()
        self._stale_clients.clear()
        await self.client.aclose()

    @asynccontextmanager
    async def _use_client(self) -> AsyncIterator[httpx.AsyncClient]:
        client = self.client
        self._in_use[client] = self._in_use.get(client, 0) + 1
        try:
            yield client
        finally:
            self._in_use[client] -= 1
            if not self._in_use[client]:
                del self._in_use[client]
            await self._close_idle_stale()

    async def _close_idle_stale(self):
        idle = [c for c in self._stale_clients if c not in self._in_use]
        if not idle:
            return
        self._stale_clients = [c for c in self._stale_clients if c in self._in_use]
        for client in idle:
            await client.aclose()
        logger.debug(f"Closed {len(idle)} superseded HTTP client(s)")

    async def send(self, record: ActivityRecord) -> bool:
        """Send one activity record."""
        try:
            async with self._use_client() as client:
                response = await client.post('/activity', json=record.to_dict())
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            self._handle_error(e, 'Failed to send activity log')
            return False

    async def send_batch(self, records: list[ActivityRecord]) -> bool:
        """Send several activity records in one request."""
        if not records:
            return True
        try:
            async with self._use_client() as client:
                response = await client.post(
                    '/activity/batch',
                    json={'logs': [r.to_dict() for r in records]},
                )
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            self._handle_error(e, 'Failed to send batch activity logs')
            return False

    async def get_user_summary(self, username: str, date: str) -> Optional[UserActivitySummary]:
        """Daily summary for username, or None if missing or unreachable."""
        try:
            async with self._use_client() as client:
                response = await client.get(f'/summary/{username}/{date}')
            if response.status_code == 404:
                return None
            response.raise_for_status()
            body = response.json()
            return body.get('data', body)
        except httpx.HTTPError as e:
            self._handle_error(e, 'Failed to fetch user summary')
            return None

    async def health_check(self) -> bool:
        try:
            async with self._use_client() as client:
                response = await client.get('/health')
            response.raise_for_status()
            return True
        except httpx.HTTPError:
            return False

    def _handle_error(self, error: httpx.HTTPError, context: str):
        if isinstance(error, httpx.HTTPStatusError):
            # Server responded with error status
            status = error.response.status_code
            logger.error(f"{context}: {status} {error.response.text[:200]}")
            self.notifier.error(f"{context}: Server error {status}")
        elif isinstance(error, httpx.RequestError):
            # Request made but no response
            logger.error(f"{context}: No response from server ({error})")
            self.notifier.error(f"{context}: Cannot reach server. Is it running?")
        else:
            logger.error(f"{context}: {error}")
            self.notifier.error(f"{context}: {error}")
