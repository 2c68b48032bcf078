"""Activity log and summary routes for the aggregation backend."""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StringConstraints, model_validator

from ..logging_config import get_logger
from .. import storage
from ..types import ActionType

logger = get_logger(__name__, namespace='backend')

router = APIRouter(prefix="/api", tags=["activity"])

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ActivityLogIn(BaseModel):
    username: NonEmptyStr
    fileName: NonEmptyStr
    filePath: NonEmptyStr
    date: str = Field(pattern=r'^\d{4}-\d{2}-\d{2}$')
    time: str = Field(pattern=r'^\d{2}:\d{2}:\d{2}$')
    timestamp: datetime
    actionType: ActionType
    typedLines: int = Field(ge=0)
    pastedLines: int = Field(ge=0)
    totalLines: int = Field(ge=0)
    contentSnippet: Optional[str] = None
    editorVersion: NonEmptyStr

    @model_validator(mode='after')
    def check_total(self):
        if self.totalLines != self.typedLines + self.pastedLines:
            raise ValueError('totalLines must equal typedLines + pastedLines')
        return self


class BatchRequest(BaseModel):
    logs: list[ActivityLogIn]


def get_db_path(request: Request) -> Optional[Path]:
    return getattr(request.app.state, 'db_path', None)


def _server_error(message: str, error: Exception) -> JSONResponse:
    logger.error(f"{message}: {error}")
    return JSONResponse(
        status_code=500,
        content={'success': False, 'message': 'Internal server error', 'error': str(error)},
    )


@router.post("/activity", status_code=201)
def create_activity_log(log: ActivityLogIn, db_path: Optional[Path] = Depends(get_db_path)):
    """Store a single activity log and update the user's daily summary."""
    payload = log.model_dump(mode='json', exclude_none=True)
    try:
        storage.insert_activity_logs([payload], db_path=db_path)
    except sqlite3.Error as e:
        return _server_error('Error creating activity log', e)

    return {
        'success': True,
        'message': 'Activity log created successfully',
        'data': payload,
    }


@router.post("/activity/batch", status_code=201)
def create_activity_logs(request: BatchRequest, db_path: Optional[Path] = Depends(get_db_path)):
    """Store several activity logs in one transaction."""
    if not request.logs:
        raise HTTPException(400, 'Logs array is required and must not be empty')

    payloads = [log.model_dump(mode='json', exclude_none=True) for log in request.logs]
    try:
        count = storage.insert_activity_logs(payloads, db_path=db_path)
    except sqlite3.Error as e:
        return _server_error('Error creating batch activity logs', e)

    return {
        'success': True,
        'message': f'{count} activity logs created successfully',
        'count': count,
    }


@router.get("/summary/{username}/{date}")
def get_summary(username: str, date: str, db_path: Optional[Path] = Depends(get_db_path)):
    """Get a user's summary for a specific date."""
    try:
        summary = storage.get_user_summary(username, date, db_path=db_path)
    except sqlite3.Error as e:
        return _server_error('Error fetching summary', e)

    if summary is None:
        raise HTTPException(404, 'No summary found for the specified user and date')

    return {'success': True, 'data': summary}


@router.get("/activity/{username}")
def list_activity_logs(
    username: str,
    date: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    db_path: Optional[Path] = Depends(get_db_path),
):
    """Get a user's activity logs, newest first, with optional date filter."""
    try:
        logs, total = storage.get_activity_logs(username, date, limit, skip, db_path=db_path)
    except sqlite3.Error as e:
        return _server_error('Error fetching activity logs', e)

    return {
        'success': True,
        'data': logs,
        'pagination': {'total': total, 'limit': limit, 'skip': skip},
    }


@router.get("/health")
def health():
    """Health check endpoint."""
    return {
        'success': True,
        'message': 'Server is healthy',
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
