#!/usr/bin/env python3
"""
YT Flashcards — main entry point.
Runs pipeline workers and exposes the submission/query operations on the
command line. Output is JSON.
"""

import sys
import json
import logging
import argparse
from pathlib import Path
from datetime import datetime

# ── Determine project root ────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from yt_flashcards.core.adapter_factory import build_transcriber, build_summarizer
from yt_flashcards.core.config import AppConfig
from yt_flashcards.core.constants import APP_NAME, APP_VERSION, LOG_DIR, CONFIG_PATH
from yt_flashcards.core.db_sqlite import Database
from yt_flashcards.core.diagnostics import get_diagnostics, missing_tools
from yt_flashcards.core.error_codes import JobError
from yt_flashcards.core.job_queue import WorkerPool
from yt_flashcards.core.media_resolver import YtDlpResolver
from yt_flashcards.core.message_queue import MessageQueue
from yt_flashcards.core.orchestrator import PipelineOrchestrator, PipelineSettings
from yt_flashcards.service.facade import FlashcardService

logger = logging.getLogger(APP_NAME)


def setup_logging(verbose: bool = False, to_stderr: bool = False):
    """Log to <app home>/logs/app.log, and to stderr for long-running workers."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [
        logging.FileHandler(LOG_DIR / "app.log", encoding="utf-8"),
    ]
    if to_stderr:
        handlers.append(logging.StreamHandler(sys.stderr))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def build_orchestrator(config: AppConfig) -> PipelineOrchestrator:
    """Wire the store, queue and adapters once per process."""
    db = Database(config.db_path)
    queue = MessageQueue(db, visibility_timeout_sec=config.get('visibility_timeout_sec'))
    resolver = YtDlpResolver(config.get('cookies_mode'), config.cookies_path)
    return PipelineOrchestrator(
        db, queue, resolver,
        transcriber=build_transcriber(config),
        summarizer=build_summarizer(config),
        workspace_root=config.workspace_dir,
        settings=PipelineSettings.from_config(config),
    )


def run_worker(orchestrator: PipelineOrchestrator, config: AppConfig,
               workers: int | None, once: bool) -> int:
    missing = missing_tools()
    if missing:
        logger.error("Missing required tools: %s", ", ".join(missing))
        print(json.dumps({"error": f"Missing required tools: {', '.join(missing)}"}))
        return 1

    pool = WorkerPool(orchestrator, worker_count=workers or config.get('worker_count'))
    if once:
        processed = pool.drain()
        print(json.dumps({"processed": processed}))
        return 0

    pool.start()
    try:
        while pool.is_running():
            pool.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted — finishing in-flight jobs")
        pool.stop()
        pool.join()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME,
                                     description="Generate flashcards from YouTube videos.")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    worker = sub.add_parser("worker", help="Run pipeline workers")
    worker.add_argument("--workers", type=int)
    worker.add_argument("--once", action="store_true",
                        help="Process queued jobs inline, then exit")

    for name in ("submit", "status", "delete", "retry"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--owner", required=True)
        cmd.add_argument("video")

    listing = sub.add_parser("list")
    listing.add_argument("--owner", required=True)
    listing.add_argument("--search")

    sub.add_parser("diagnostics")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, to_stderr=args.command == "worker")
    logger.info("%s v%s — %s at %s", APP_NAME, APP_VERSION, args.command,
                datetime.now().isoformat())

    config = AppConfig(args.config)
    if args.command == "diagnostics":
        print(json.dumps(get_diagnostics(config), indent=2))
        return 0

    orchestrator = build_orchestrator(config)
    service = FlashcardService(orchestrator)
    try:
        if args.command == "worker":
            return run_worker(orchestrator, config, args.workers, args.once)
        if args.command == "submit":
            result = service.submit(args.owner, {"videoId": args.video})
        elif args.command == "status":
            result = service.get(args.owner, args.video)
        elif args.command == "delete":
            result = service.delete(args.owner, args.video)
        elif args.command == "retry":
            result = service.retry(args.owner, args.video)
        elif args.search:
            result = service.search(args.owner, args.search)
        else:
            result = service.list_records(args.owner)
    except JobError as e:
        print(json.dumps({"error": e.message, "code": e.code}))
        return 2
    finally:
        orchestrator.db.close()

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
