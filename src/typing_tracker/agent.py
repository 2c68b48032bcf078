"""Local tracker agent.

Runs next to the editor, receives its document events and relays activity
records to the aggregation backend. Owns the TrackerContext and the
EventHandler for the lifetime of the process.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .event_handler import EventHandler, TrackerContext, create_context
from .logging_config import get_logger
from .routes import editor_router

logger = get_logger(__name__, namespace='agent')


async def run_startup_checks(context: TrackerContext):
    """Warn once about incomplete settings and an unreachable backend."""
    config_manager = context.config_manager
    username = await config_manager.resolve_username()
    logger.info(f"Tracking activity for user: {username or 'anonymous'}")

    valid, errors = config_manager.validate_config()
    if not valid:
        context.notifier.warning_once(
            'config-incomplete',
            'Configuration incomplete: ' + ', '.join(errors),
        )

    if not await context.api_client.health_check():
        context.notifier.warning(
            'Cannot connect to backend server. Data will not be saved. Please start the server.'
        )


def create_app(context: Optional[TrackerContext] = None) -> FastAPI:
    """Build the agent app; the context is created at startup if not given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or create_context()
        handler = EventHandler(ctx)
        app.state.context = ctx
        app.state.handler = handler
        await run_startup_checks(ctx)
        logger.info("Typing tracker agent is now active")

        yield

        logger.info("Typing tracker agent is deactivating...")
        await handler.dispose()
        await ctx.api_client.aclose()
        logger.info("Typing tracker agent deactivated")

    app = FastAPI(title="Typing Tracker Agent", lifespan=lifespan)
    app.include_router(editor_router)
    return app


app = create_app()
