"""Command line entry point for the Typing Tracker.

Usage:
    typing-tracker agent                  # Local agent on 127.0.0.1:8765
    typing-tracker server --port 3000     # Aggregation backend
    typing-tracker stats                  # Today's summary for the configured user
    typing-tracker health                 # Check the backend is reachable
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import uvicorn

from .config import AGENT_HOST, AGENT_PORT, BACKEND_HOST, BACKEND_PORT, ConfigManager
from .logging_config import setup_logging
from .services.api_client import ApiClient
from .utils import get_current_date


def _run_agent(args) -> int:
    from .agent import app

    print(f"Starting Typing Tracker agent on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


def _run_server(args) -> int:
    from .server import create_app

    app = create_app(Path(args.db) if args.db else None)
    print(f"Starting Typing Tracker backend on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


async def _fetch_stats(date: str) -> int:
    config_manager = ConfigManager()
    username = await config_manager.resolve_username()
    if not username:
        print("Username not configured", file=sys.stderr)
        return 1

    client = ApiClient(config_manager)
    try:
        summary = await client.get_user_summary(username, date)
    finally:
        await client.aclose()

    if not summary:
        print(f"No activity recorded for {date}")
        return 0

    print(json.dumps(summary, indent=2))
    return 0


async def _check_health() -> int:
    config_manager = ConfigManager()
    client = ApiClient(config_manager)
    try:
        healthy = await client.health_check()
    finally:
        await client.aclose()

    endpoint = config_manager.get_api_endpoint()
    if healthy:
        print(f"Backend at {endpoint} is healthy")
        return 0
    print(f"Cannot reach backend at {endpoint}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='typing-tracker', description="Typing and paste activity tracker")
    subparsers = parser.add_subparsers(dest='command', required=True)

    agent = subparsers.add_parser('agent', help='Run the local editor agent')
    agent.add_argument('--host', default=AGENT_HOST, help='Host to bind to')
    agent.add_argument('--port', type=int, default=AGENT_PORT, help='Port to bind to')

    server = subparsers.add_parser('server', help='Run the aggregation backend')
    server.add_argument('--host', default=BACKEND_HOST, help='Host to bind to')
    server.add_argument('--port', type=int, default=BACKEND_PORT, help='Port to bind to')
    server.add_argument('--db', default=None, help='SQLite database path')

    stats = subparsers.add_parser('stats', help="Show a day's summary")
    stats.add_argument('--date', default=None, help='Date (YYYY-MM-DD), default today')

    subparsers.add_parser('health', help='Check the backend is reachable')
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == 'agent':
        return _run_agent(args)
    if args.command == 'server':
        return _run_server(args)
    if args.command == 'stats':
        return asyncio.run(_fetch_stats(args.date or get_current_date()))
    return asyncio.run(_check_health())


if __name__ == "__main__":
    sys.exit(main())
