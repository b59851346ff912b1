"""Newest Audit — entry point.

Without arguments, runs one audit and prints the summary. ``--serve`` starts
the HTTP host with the run history API and the optional scheduler.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path

import certifi
import uvicorn

# Fix SSL cert resolution for curl_cffi (used by Scrapling)
os.environ.setdefault("CURL_CA_BUNDLE", certifi.where())
os.environ.setdefault("SSL_CERT_FILE", certifi.where())

from api.app import create_app  # noqa: E402
from api.routers.runs import set_scheduler  # noqa: E402
from config.settings import settings  # noqa: E402
from core.errors import SourceUnavailableError  # noqa: E402
from core.events import LoggingSink  # noqa: E402
from data.database import init_db  # noqa: E402
from scrapers.orchestrator import build_fetcher, failed_result, run_audit  # noqa: E402
from scrapers.scheduler import AuditScheduler  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
log = logging.getLogger(__name__)

app = create_app()


@app.on_event("startup")
async def on_startup() -> None:
    log.info("Initialising database…")
    await init_db()

    log.info("Starting audit scheduler…")
    scheduler = AuditScheduler(broadcast_fn=app.state.broadcaster.broadcast)
    app.state.scheduler = scheduler
    set_scheduler(scheduler)
    scheduler.start()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    if hasattr(app.state, "scheduler"):
        app.state.scheduler.stop()
        log.info("Audit scheduler stopped.")


def open_image(path: str) -> None:
    """Open ``path`` with the platform's default viewer. Never fatal."""
    image = Path(path)
    if not image.is_file():
        log.warning("%s not found, skipping post-run image", image)
        return
    if sys.platform == "win32":
        cmd = ["cmd", "/c", "start", "", str(image)]
    elif sys.platform == "darwin":
        cmd = ["open", str(image)]
    else:
        cmd = ["xdg-open", str(image)]
    try:
        subprocess.run(cmd, check=True, capture_output=True)
        log.info("Opened %s", image)
    except (OSError, subprocess.CalledProcessError) as e:
        log.error("Failed to open %s: %s", image, e)


async def run_once(args: argparse.Namespace) -> int:
    try:
        fetcher = build_fetcher(args.fetcher, args.replay_file)
    except (ValueError, SourceUnavailableError) as e:
        log.error("Cannot start audit: %s", e)
        result = failed_result(e, started_at=datetime.now(timezone.utc))
    else:
        result = await run_audit(
            fetcher,
            target_count=args.target,
            max_iterations=args.max_iterations,
            tie_break=args.tie_break,
            sink=LoggingSink(),
        )
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Collect the newest listing items and verify they sort by recency."
    )
    parser.add_argument("--serve", action="store_true", help="Start the HTTP host")
    parser.add_argument("--fetcher", choices=["browser", "http", "replay"], default=None)
    parser.add_argument("--replay-file", default=None, help="JSON pages for --fetcher replay")
    parser.add_argument("--target", type=int, default=None, help="Items per batch")
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument("--tie-break", choices=["title", "arrival"], default=None)
    parser.add_argument("--open-image", default=None, help="Image to open after the run")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.serve:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.DASHBOARD_PORT,
            reload=False,
        )
        return 0

    try:
        status = asyncio.run(run_once(args))
    finally:
        image = args.open_image or settings.POST_RUN_IMAGE
        if image:
            open_image(image)
    return status


if __name__ == "__main__":
    sys.exit(main())
