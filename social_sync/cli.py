"""
Command Line Interface
======================

``social-sync`` runs the pipeline outside the API server: one-off syncs, the
cold-start bulk build, orphan sweeps and state resets.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from social_sync.config.logging import get_logger, setup_logging
from social_sync.config.settings import Settings, get_settings
from social_sync.core.errors import SocialImageError
from social_sync.core.services import create_services
from social_sync.core.sync.cold_start import run_cold_start
from social_sync.models.schemas import Snapshot, SyncStatus

logger = get_logger(__name__)


def load_snapshot(path: Path) -> Snapshot:
    """Read a snapshot JSON file."""
    return Snapshot.model_validate_json(Path(path).read_text(encoding="utf-8"))


async def run_sync(settings: Settings, snapshot: Snapshot) -> int:
    services = create_services(settings)
    try:
        report = await services.orchestrator.sync(snapshot)
    finally:
        await services.close()

    if report is None:
        return 1
    print(report.model_dump_json(indent=2))
    return 1 if report.status == SyncStatus.FAILED else 0


async def run_cold_start_command(settings: Settings, snapshot: Snapshot, serve_public: bool) -> int:
    services = create_services(settings)

    def report_progress(completed: int, total: int) -> None:
        print(f"Generated {completed}/{total} social images", file=sys.stderr)

    try:
        result = await run_cold_start(
            snapshot,
            services.scheduler,
            services.storage,
            settings,
            serve_public=serve_public,
            on_progress=report_progress,
        )
    finally:
        await services.close()

    print(result.model_dump_json(indent=2))
    return 1 if result.failure_count else 0


async def run_sweep(settings: Settings, snapshot: Snapshot) -> int:
    services = create_services(settings)
    result = await services.sweeper.sweep(snapshot)
    print(result.model_dump_json(indent=2))
    return 1 if result.failed else 0


async def run_reset(settings: Settings) -> int:
    services = create_services(settings)
    removed = await services.store.clear()
    print("Sync state removed" if removed else "No sync state to remove")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="social-sync", description="Generate and sync social preview images"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Sync artifacts with a snapshot")
    sync_parser.add_argument("snapshot", type=Path, help="Snapshot JSON file")

    cold_parser = subparsers.add_parser("cold-start", help="Generate every missing artifact")
    cold_parser.add_argument("snapshot", type=Path, help="Snapshot JSON file")
    cold_parser.add_argument(
        "--serve-public",
        action="store_true",
        help="Serve the public directory locally while rendering",
    )

    sweep_parser = subparsers.add_parser("sweep", help="Delete orphaned artifacts")
    sweep_parser.add_argument("snapshot", type=Path, help="Snapshot JSON file")

    subparsers.add_parser("reset", help="Remove the stored sync state")
    subparsers.add_parser("serve", help="Run the HTTP API")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings)

    if args.command == "serve":
        from social_sync.api.main import run_development_server

        run_development_server(settings)
        return 0

    try:
        if args.command == "reset":
            return asyncio.run(run_reset(settings))

        snapshot = load_snapshot(args.snapshot)
        if args.command == "sync":
            return asyncio.run(run_sync(settings, snapshot))
        if args.command == "cold-start":
            return asyncio.run(run_cold_start_command(settings, snapshot, args.serve_public))
        return asyncio.run(run_sweep(settings, snapshot))
    except (OSError, ValidationError) as e:
        path = str(getattr(args, "snapshot", ""))
        logger.error("Failed to read snapshot", path=path, error=str(e))
        return 1
    except SocialImageError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
