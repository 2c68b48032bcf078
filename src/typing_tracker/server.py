"""Aggregation backend for the Typing Tracker.

Receives activity records from editor agents, stores them in SQLite and
serves per-user daily summaries.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import storage
from .logging_config import get_logger
from .routes import activity_router

logger = get_logger(__name__, namespace='backend')


def create_app(db_path: Optional[Path] = None) -> FastAPI:
    """Build the backend app. db_path defaults to the configured DB_PATH."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage.init_database(app.state.db_path)
        logger.info(f"Backend storing activity in {app.state.db_path or storage.DB_PATH}")
        yield

    app = FastAPI(title="Typing Tracker Backend", lifespan=lifespan)
    app.state.db_path = db_path

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(activity_router)
    return app


app = create_app()
