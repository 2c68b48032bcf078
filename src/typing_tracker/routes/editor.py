"""Editor-facing routes of the local tracker agent.

The editor extension streams document events over ``/ws/editor`` and calls
the REST endpoints for its commands (show stats, toggle tracking, reload
settings).
"""

import json

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ..event_handler import EventHandler
from ..logging_config import get_log_buffer_handler, get_logger, set_log_level
from ..types import EditorChangeMessage, EditorDocumentMessage, RawChange
from ..utils import get_current_date

logger = get_logger(__name__, namespace='agent')

router = APIRouter(tags=["editor"])


class EditorMessageError(ValueError):
    """An editor message that cannot be processed."""


def _require(msg: dict, key: str, kind: type):
    value = msg.get(key)
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is int):
        raise EditorMessageError(f"'{key}' must be a {kind.__name__}")
    return value


def _parse_change(change) -> RawChange:
    """Validate one entry of a change message's 'changes' list."""
    if not isinstance(change, dict):
        raise EditorMessageError('Each change must be a JSON object')
    text = change.get('text', '')
    if not isinstance(text, str):
        raise EditorMessageError("'text' must be a str")
    range_length = change.get('rangeLength', 0)
    if not isinstance(range_length, int) or isinstance(range_length, bool) or range_length < 0:
        raise EditorMessageError("'rangeLength' must be a non-negative int")
    return {'text': text, 'rangeLength': range_length}


def _parse_change_message(msg: dict) -> EditorChangeMessage:
    changes = msg.get('changes')
    if not isinstance(changes, list):
        raise EditorMessageError("'changes' must be a list")
    file_name = msg.get('fileName')
    if file_name is not None and not isinstance(file_name, str):
        raise EditorMessageError("'fileName' must be a str")

    parsed: EditorChangeMessage = {
        'type': 'change',
        'filePath': _require(msg, 'filePath', str),
        'lineCount': _require(msg, 'lineCount', int),
        # Validate every entry before any of them is applied
        'changes': [_parse_change(c) for c in changes],
    }
    if file_name is not None:
        parsed['fileName'] = file_name
    return parsed


def _parse_document_message(msg: dict) -> EditorDocumentMessage:
    return {
        'type': msg['type'],
        'filePath': _require(msg, 'filePath', str),
        'lineCount': _require(msg, 'lineCount', int),
    }


async def dispatch_editor_message(handler: EventHandler, msg: dict) -> dict:
    """Apply one editor message and return the reply to send back.

    Message format:
    {"type": "change", "filePath": str, "fileName": str, "lineCount": int,
     "changes": [{"text": str, "rangeLength": int}, ...]}
    {"type": "save" | "close", "filePath": str, "lineCount": int}
    {"type": "ping"}

    Raises:
        EditorMessageError: if the message is malformed; nothing is applied.
    """
    msg_type = msg.get('type')

    if msg_type == 'ping':
        return {'type': 'pong'}

    if msg_type == 'change':
        change = _parse_change_message(msg)
        tracked = await handler.handle_change(
            change['filePath'],
            change.get('fileName'),
            change['lineCount'],
            change['changes'],
        )
        return {'type': 'ack', 'tracked': tracked}

    if msg_type in ('save', 'close'):
        document = _parse_document_message(msg)
        if msg_type == 'save':
            await handler.handle_save(document['filePath'], document['lineCount'])
        else:
            await handler.handle_close(document['filePath'], document['lineCount'])
        return {'type': 'ack'}

    raise EditorMessageError(f"Unknown message type: {msg_type!r}")


@router.websocket("/ws/editor")
async def editor_websocket(websocket: WebSocket):
    """Serial stream of editor document events.

    Each message is processed to completion before the next one is read.
    """
    await websocket.accept()
    handler: EventHandler = websocket.app.state.handler
    logger.info("Editor connected")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
                if not isinstance(msg, dict):
                    raise EditorMessageError('Message must be a JSON object')
                reply = await dispatch_editor_message(handler, msg)
            except (json.JSONDecodeError, EditorMessageError) as e:
                reply = {'type': 'error', 'message': str(e)}
            await websocket.send_json(reply)
    except WebSocketDisconnect:
        logger.info("Editor disconnected")


@router.get("/api/status")
async def get_status(request: Request):
    """Tracking state and open sessions."""
    handler: EventHandler = request.app.state.handler
    return {
        'enabled': handler.config_manager.is_enabled(),
        'username': await handler.config_manager.resolve_username(),
        **handler.stats(),
    }


@router.get("/api/stats/today")
async def get_today_stats(request: Request):
    """Today's summary from the backend for the configured user."""
    handler: EventHandler = request.app.state.handler
    context = handler.context
    username = await handler.config_manager.resolve_username()
    if not username:
        context.notifier.error('Username not configured')
        raise HTTPException(400, 'Username not configured')

    date = get_current_date()
    summary = await context.api_client.get_user_summary(username, date)
    if not summary:
        context.notifier.info('No activity recorded for today')
        return {'date': date, 'summary': None}
    return {'date': date, 'summary': summary}


@router.post("/api/tracking/toggle")
async def toggle_tracking(request: Request):
    handler: EventHandler = request.app.state.handler
    enabled = handler.config_manager.toggle_enabled()
    handler.context.notifier.info(f"Tracking {'enabled' if enabled else 'disabled'}")
    return {'enabled': enabled}


@router.post("/api/config/reload")
async def reload_config(request: Request):
    """Re-read settings; listeners rebuild the API client if they changed."""
    handler: EventHandler = request.app.state.handler
    changed = handler.config_manager.refresh()
    if changed:
        handler.context.notifier.info('Configuration updated')
    return {'changed': changed, 'config': handler.config_manager.to_dict()}


@router.get("/api/notices")
async def get_notices(request: Request, count: int = 20):
    handler: EventHandler = request.app.state.handler
    return {'notices': handler.context.notifier.history(count)}


class LogLevelRequest(BaseModel):
    level: str


@router.get("/api/logs")
def get_logs(count: int = 100, namespace: str | None = None, level: str | None = None):
    """Recent log entries from the in-memory buffer."""
    return {'logs': get_log_buffer_handler().get_history(count, namespace, min_level=level)}


@router.put("/api/logs/level")
def update_log_level(request: LogLevelRequest):
    set_log_level(request.level)
    return {'level': request.level.upper()}
