import argparse
import asyncio
import sys
from typing import Optional

from loguru import logger

from soundshelf.core.config import settings
from soundshelf.core.db import AsyncSessionLocal, init_db
from soundshelf.core.logger import setup_logging
from soundshelf.core.scan_state import ScanStatus
from soundshelf.core.scanner_config import ScanConfig
from soundshelf.worker.coordinator import ScanCoordinator


async def run_scan(config: ScanConfig) -> bool:
    """Run one scan in the foreground.

    Args:
        config: Scan parameters.

    Returns:
        True if the scan completed, False if it failed.
    """
    await init_db()
    coordinator = ScanCoordinator(AsyncSessionLocal)
    state = await coordinator.run(config)

    if state.status == ScanStatus.COMPLETED:
        logger.info(f"Scan complete: {state.stats}")
        return True
    logger.error(f"Scan failed: {state.last_error}")
    return False


def serve(host: str, port: int) -> None:
    import uvicorn

    logger.info(f"Starting soundshelf API on {host}:{port}")
    uvicorn.run("soundshelf.api.main:app", host=host, port=port, reload=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="soundshelf music library indexer")
    parser.add_argument(
        "--log-level", default=None, help="Override LOG_LEVEL (e.g. DEBUG)"
    )
    subparsers = parser.add_subparsers(dest="command")

    # Init DB Command
    init_parser = subparsers.add_parser("init-db", help="Initialize Database Tables")
    init_parser.add_argument(
        "--force", action="store_true", help="Drop and re-create all tables"
    )

    # Scan Command
    scan_parser = subparsers.add_parser(
        "scan", help="Synchronize the catalog with a music directory"
    )
    scan_parser.add_argument(
        "path", nargs="?", default=None, help="Directory path to scan (default: MUSIC_PATH)"
    )
    scan_parser.add_argument("--batch-size", type=int, default=None)
    scan_parser.add_argument("--path-batch-size", type=int, default=None)
    scan_parser.add_argument(
        "--legacy",
        action="store_true",
        help="Load the whole catalog snapshot up front instead of per batch",
    )
    scan_parser.add_argument(
        "--no-progress", action="store_true", help="Disable the progress bar"
    )

    # Serve Command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=settings.API_HOST)
    serve_parser.add_argument("--port", type=int, default=settings.API_PORT)

    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "init-db":
        asyncio.run(init_db(force=args.force))
        logger.info("Database initialized.")

    elif args.command == "scan":
        config = ScanConfig.from_settings(
            args.path,
            batch_size=args.batch_size,
            path_batch_size=args.path_batch_size,
            optimized_mode=False if args.legacy else None,
            show_progress=False if args.no_progress else None,
        )
        ok = asyncio.run(run_scan(config))
        return 0 if ok else 1

    elif args.command == "serve":
        serve(args.host, args.port)

    else:
        parser.print_help()

    return 0


if __name__ == "__main__":
    sys.exit(main())
