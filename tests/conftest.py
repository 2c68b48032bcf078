"""Shared fixtures for the typing tracker tests."""

import json
import os

import pytest

from src.typing_tracker.config import ConfigManager


class FakeTransport:
    """Records what the flusher sends and answers with a fixed result."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls: list[tuple[str, list]] = []

    @property
    def records(self) -> list:
        return [r for _, batch in self.calls for r in batch]

    async def send(self, record) -> bool:
        self.calls.append(('send', [record]))
        return self.result

    async def send_batch(self, records) -> bool:
        self.calls.append(('send_batch', list(records)))
        return self.result


@pytest.fixture(autouse=True)
def clean_tracker_env(monkeypatch):
    """Keep TT_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith('TT_'):
            monkeypatch.delenv(key)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({
        'username': 'alice',
        'apiEndpoint': 'http://backend.test/api',
        'enabled': True,
        'trackContentSnippets': False,
        'debounceInterval': 2000,
    }))
    return path


@pytest.fixture
def config_manager(settings_file):
    return ConfigManager(settings_file=settings_file)


@pytest.fixture
def fake_transport():
    return FakeTransport()
