"""Command-line interface for the KNUE portal bridge"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import orjson
import uvicorn
from loguru import logger

from . import __version__
from .api import build_services, create_app
from .api_client import PortalClient
from .config import (
    CAFETERIA_KINDS,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STORE_FILE,
    WEEKDAYS,
)
from .exceptions import PortalError
from .logging_config import route_stdlib_logging, setup_logging
from .menu_cache import MenuCacheEngine
from .retry import RetryScheduler
from .storage import JsonFileStore, MemoryStore


def _build_store(args: argparse.Namespace) -> MemoryStore:
    if args.memory_store:
        return MemoryStore()
    return JsonFileStore(Path(args.store_file))


async def show_menu(
    engine: MenuCacheEngine,
    day: Optional[str] = None,
    cafeteria: Optional[str] = None,
    today: bool = False,
    force_refresh: bool = False,
) -> dict:
    """Resolve one menu query the same way the HTTP routes do"""
    if force_refresh:
        snapshot = await engine.refresh()
    else:
        snapshot = await engine.get_snapshot()

    if today:
        return await engine.get_today()
    if day:
        return await engine.get_by_day(day)
    if cafeteria:
        return await engine.get_by_cafeteria(cafeteria)
    return snapshot.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="KNUE portal bridge - cafeteria menu cache and session API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--store-file",
        type=str,
        default=str(DEFAULT_STORE_FILE),
        help="JSON file backing the credential store and menu cache",
    )
    config_group.add_argument(
        "--memory-store", action="store_true", help="Keep everything in memory only"
    )
    config_group.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_REQUEST_TIMEOUT,
        help="Upstream request timeout in seconds",
    )
    config_group.add_argument("--verbose", action="store_true", help="Debug logging")
    config_group.add_argument("--log-file", type=str, help="Log file path")

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=DEFAULT_HOST, help="Bind address")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help="Bind port")
    serve.add_argument("--ssl-keyfile", type=str, help="TLS private key (PEM)")
    serve.add_argument("--ssl-certfile", type=str, help="TLS certificate (PEM)")
    serve.add_argument(
        "--no-initial-fetch", action="store_true", help="Skip the menu fetch at startup"
    )

    menu = commands.add_parser("menu", help="Print the cached menu as JSON")
    selector = menu.add_mutually_exclusive_group()
    selector.add_argument("--day", type=str, choices=WEEKDAYS, help="One weekday")
    selector.add_argument("--cafeteria", type=str, choices=CAFETERIA_KINDS, help="One cafeteria")
    selector.add_argument("--today", action="store_true", help="Today's meals")
    menu.add_argument("--refresh", action="store_true", help="Fetch from the portal first")

    commands.add_parser("refresh", help="Force a menu fetch and store the result")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    setup_logging(verbose=args.verbose, log_file=log_file)

    logger.info("=" * 60)
    logger.info(f"KNUE Portal Bridge (v{__version__})")
    logger.info("=" * 60)

    store = _build_store(args)
    client = PortalClient(timeout=args.timeout)

    if args.command == "serve":
        services = build_services(store=store, client=client)
        app = create_app(services, initial_fetch=not args.no_initial_fetch)
        # uvicorn logs through stdlib logging; send it to the loguru sinks instead
        route_stdlib_logging()
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            ssl_keyfile=args.ssl_keyfile,
            ssl_certfile=args.ssl_certfile,
            log_level="debug" if args.verbose else "info",
            log_config=None,
        )
        return

    async def run():
        if isinstance(store, JsonFileStore):
            await store.load()
        # One-shot commands never wait around for deferred retries
        engine = MenuCacheEngine(client, store, retry=RetryScheduler(max_retries=1))
        try:
            if args.command == "refresh":
                snapshot = await engine.refresh()
                return snapshot.to_dict()
            return await show_menu(
                engine,
                day=args.day,
                cafeteria=args.cafeteria,
                today=args.today,
                force_refresh=args.refresh,
            )
        finally:
            engine.close()

    try:
        result = asyncio.run(run())
    except PortalError as e:
        logger.error(f"❌ {e.category}: {e}")
        sys.exit(1)

    sys.stdout.write(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode() + "\n")


if __name__ == "__main__":
    main()
