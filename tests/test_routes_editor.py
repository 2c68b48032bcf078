"""Tests for the local agent's editor routes."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from src.typing_tracker.agent import create_app
from src.typing_tracker.config import ConfigManager
from src.typing_tracker.event_handler import create_context


class FakeBackend:
    """MockTransport handler standing in for the aggregation backend."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.summary = None
        self.healthy = True

    @property
    def posted_logs(self) -> list[dict]:
        logs = []
        for request in self.requests:
            if request.method != 'POST':
                continue
            body = json.loads(request.content)
            logs.extend(body['logs'] if 'logs' in body else [body])
        return logs

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == '/api/health':
            if not self.healthy:
                raise httpx.ConnectError('refused')
            return httpx.Response(200, json={'success': True})
        if path.startswith('/api/summary/'):
            if self.summary is None:
                return httpx.Response(404, json={'detail': 'No summary found'})
            return httpx.Response(200, json={'success': True, 'data': self.summary})
        return httpx.Response(201, json={'success': True})


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def clipboard_text():
    return {'text': ''}


@pytest.fixture
def app(config_manager, backend, clipboard_text):
    context = create_context(
        config_manager,
        clipboard_reader=lambda: clipboard_text['text'],
        http_transport=httpx.MockTransport(backend),
    )
    return create_app(context)


@pytest.fixture
def client(app):
    """Create test client; leaving the block runs the shutdown flush."""
    with TestClient(app) as client:
        yield client


class TestEditorWebSocket:
    """Tests for the /ws/editor stream."""

    def test_ping(self, client):
        with client.websocket_connect('/ws/editor') as ws:
            ws.send_json({'type': 'ping'})
            assert ws.receive_json() == {'type': 'pong'}

    def test_change_is_tracked(self, client):
        with client.websocket_connect('/ws/editor') as ws:
            ws.send_json({
                'type': 'change',
                'filePath': '/proj/app.py',
                'fileName': 'app.py',
                'lineCount': 12,
                'changes': [{'text': 'x', 'rangeLength': 0}],
            })
            assert ws.receive_json() == {'type': 'ack', 'tracked': True}

        status = client.get('/api/status').json()
        assert status['pendingSessions'] == 1
        assert status['sessions'][0]['typedLines'] == 1

    def test_excluded_file_not_tracked(self, client):
        with client.websocket_connect('/ws/editor') as ws:
            ws.send_json({
                'type': 'change',
                'filePath': '/proj/node_modules/x.js',
                'lineCount': 1,
                'changes': [{'text': 'x', 'rangeLength': 0}],
            })
            assert ws.receive_json() == {'type': 'ack', 'tracked': False}

    def test_invalid_json(self, client):
        with client.websocket_connect('/ws/editor') as ws:
            ws.send_text('{nope')
            reply = ws.receive_json()

        assert reply['type'] == 'error'

    @pytest.mark.parametrize('msg', [
        ['not', 'an', 'object'],
        {'type': 'teleport'},
        {'type': 'change', 'filePath': '/p/a.py', 'lineCount': 1, 'changes': 'x'},
        {'type': 'change', 'filePath': '/p/a.py', 'lineCount': True, 'changes': []},
        {'type': 'save', 'filePath': 42, 'lineCount': 1},
        {'type': 'close', 'filePath': '/p/a.py'},
        {'type': 'change', 'filePath': '/p/a.py', 'lineCount': 1,
         'changes': [{'text': 'x', 'rangeLength': 'two'}]},
        {'type': 'change', 'filePath': '/p/a.py', 'lineCount': 1,
         'changes': [{'text': 5, 'rangeLength': 0}]},
        {'type': 'change', 'filePath': '/p/a.py', 'lineCount': 1,
         'changes': [{'text': '', 'rangeLength': -3}]},
        {'type': 'change', 'filePath': '/p/a.py', 'lineCount': 1,
         'changes': ['x']},
        {'type': 'change', 'filePath': '/p/a.py', 'fileName': 7, 'lineCount': 1,
         'changes': []},
    ])
    def test_malformed_messages(self, client, msg):
        """Test malformed messages get an error reply and the stream stays open."""
        with client.websocket_connect('/ws/editor') as ws:
            ws.send_json(msg)
            assert ws.receive_json()['type'] == 'error'
            ws.send_json({'type': 'ping'})
            assert ws.receive_json() == {'type': 'pong'}

    def test_bad_change_entry_applies_nothing(self, client):
        """Test one invalid entry rejects the whole change message."""
        with client.websocket_connect('/ws/editor') as ws:
            ws.send_json({
                'type': 'change',
                'filePath': '/proj/app.py',
                'lineCount': 3,
                'changes': [
                    {'text': 'ok', 'rangeLength': 0},
                    {'text': 'x', 'rangeLength': 'two'},
                ],
            })
            reply = ws.receive_json()
            ws.send_json({'type': 'ping'})
            assert ws.receive_json() == {'type': 'pong'}

        assert reply['type'] == 'error'
        assert 'rangeLength' in reply['message']
        assert client.get('/api/status').json()['sessions'] == []

    def test_paste_save_flow(self, app, backend, clipboard_text):
        """Test a pasted block followed by a save reaches the backend."""
        clipboard_text['text'] = 'a\nb\nc\nd'
        with TestClient(app) as client:
            with client.websocket_connect('/ws/editor') as ws:
                ws.send_json({
                    'type': 'change',
                    'filePath': '/proj/app.py',
                    'fileName': 'app.py',
                    'lineCount': 10,
                    'changes': [{'text': 'a\nb\nc\nd', 'rangeLength': 0}],
                })
                ws.receive_json()
                ws.send_json({'type': 'save', 'filePath': '/proj/app.py', 'lineCount': 13})
                assert ws.receive_json() == {'type': 'ack'}

        logs = backend.posted_logs
        assert len(logs) == 1
        assert logs[0]['actionType'] == 'paste'
        assert logs[0]['pastedLines'] == 3
        assert logs[0]['username'] == 'alice'

    def test_close_drops_session(self, client):
        with client.websocket_connect('/ws/editor') as ws:
            ws.send_json({
                'type': 'change',
                'filePath': '/proj/app.py',
                'lineCount': 1,
                'changes': [{'text': 'x', 'rangeLength': 0}],
            })
            ws.receive_json()
            ws.send_json({'type': 'close', 'filePath': '/proj/app.py', 'lineCount': 2})
            assert ws.receive_json() == {'type': 'ack'}

        assert client.get('/api/status').json()['sessions'] == []


class TestShutdownFlush:
    """Tests for the flush performed when the agent stops."""

    def test_pending_changes_flushed_on_shutdown(self, app, backend):
        with TestClient(app) as client:
            with client.websocket_connect('/ws/editor') as ws:
                ws.send_json({
                    'type': 'change',
                    'filePath': '/proj/app.py',
                    'fileName': 'app.py',
                    'lineCount': 5,
                    'changes': [{'text': 'one\ntwo', 'rangeLength': 0}],
                })
                ws.receive_json()
            assert backend.posted_logs == []

        logs = backend.posted_logs
        assert len(logs) == 1
        assert logs[0]['typedLines'] == 2
        assert logs[0]['fileName'] == 'app.py'


class TestStartupChecks:
    """Tests for warnings raised at startup."""

    def test_healthy_backend_no_warning(self, client):
        assert client.get('/api/notices').json()['notices'] == []

    def test_unreachable_backend_warns(self, app, backend):
        backend.healthy = False
        with TestClient(app) as client:
            notices = client.get('/api/notices').json()['notices']

        assert notices[0]['level'] == 'warning'
        assert 'Cannot connect to backend server' in notices[0]['message']

    def test_incomplete_config_warns(self, tmp_path, backend):
        path = tmp_path / 'empty.json'
        path.write_text(json.dumps({'username': ''}))

        context = create_context(
            ConfigManager(settings_file=path),
            clipboard_reader=lambda: '',
            http_transport=httpx.MockTransport(backend),
        )
        with TestClient(create_app(context)) as client:
            notices = client.get('/api/notices').json()['notices']

        assert any('Configuration incomplete' in n['message'] for n in notices)


class TestStatusAndCommands:
    """Tests for the agent's REST commands."""

    def test_status(self, client):
        status = client.get('/api/status').json()

        assert status['enabled'] is True
        assert status['username'] == 'alice'
        assert status['sessions'] == []
        assert status['flushScheduled'] is False

    def test_today_stats(self, client, backend):
        backend.summary = {'username': 'alice', 'totalTypedLines': 12}

        body = client.get('/api/stats/today').json()

        assert body['summary'] == {'username': 'alice', 'totalTypedLines': 12}
        assert len(body['date']) == 10

    def test_today_stats_without_activity(self, client):
        body = client.get('/api/stats/today').json()

        assert body['summary'] is None
        notices = client.get('/api/notices').json()['notices']
        assert notices[-1]['message'] == 'Typing Tracker: No activity recorded for today'

    def test_toggle(self, client, settings_file):
        assert client.post('/api/tracking/toggle').json() == {'enabled': False}
        assert json.loads(settings_file.read_text())['enabled'] is False

        with client.websocket_connect('/ws/editor') as ws:
            ws.send_json({
                'type': 'change',
                'filePath': '/proj/app.py',
                'lineCount': 1,
                'changes': [{'text': 'x', 'rangeLength': 0}],
            })
            assert ws.receive_json() == {'type': 'ack', 'tracked': False}

        assert client.post('/api/tracking/toggle').json() == {'enabled': True}

    def test_reload_config(self, client, settings_file):
        assert client.post('/api/config/reload').json()['changed'] is False

        settings = json.loads(settings_file.read_text())
        settings['debounceInterval'] = 900
        settings_file.write_text(json.dumps(settings))
        body = client.post('/api/config/reload').json()

        assert body['changed'] is True
        assert body['config']['debounce_interval_ms'] == 900


class TestLogRoutes:
    """Tests for the log buffer routes."""

    def test_get_logs(self, client):
        body = client.get('/api/logs?count=5').json()

        assert isinstance(body['logs'], list)
        assert len(body['logs']) <= 5

    def test_set_level(self, client):
        response = client.put('/api/logs/level', json={'level': 'debug'})

        assert response.json() == {'level': 'DEBUG'}
        client.put('/api/logs/level', json={'level': 'info'})
