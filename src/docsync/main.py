from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict
from typing import Optional, Sequence

from docsync.application.container import build_container
from docsync.config import load_settings
from docsync.domain.errors import AppError, ConfigurationError
from docsync.domain.models import Stream
from docsync.logging_config import setup_logging
from docsync.services.scheduler import MODE_SEQUENTIAL, MODES

log = logging.getLogger(__name__)

STREAM_CHOICES = [s.value for s in Stream]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docsync", description="Resumable sync of invoicing documents into a workbook.")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    full = sub.add_parser("full", help="Scan every page of a stream and upsert all rows.")
    full.add_argument("stream", choices=STREAM_CHOICES)

    test = sub.add_parser("test", help="Scan only the first pages of a stream.")
    test.add_argument("stream", choices=STREAM_CHOICES)
    test.add_argument("--pages", type=int, default=1)

    batch = sub.add_parser("batch", help="Run one resumable batch of a stream.")
    batch.add_argument("stream", choices=STREAM_CHOICES)

    restart = sub.add_parser("restart", help="Reset a stream cursor to page 1.")
    restart.add_argument("stream", choices=STREAM_CHOICES)

    sub.add_parser("margins", help="Recompute margins from stored rows without API calls.")
    sub.add_parser("status", help="Show the state and cursor of every stream.")

    auto = sub.add_parser("auto", help="Control the recurring auto-sync.")
    auto_sub = auto.add_subparsers(dest="action", required=True)
    start = auto_sub.add_parser("start")
    start.add_argument("--mode", choices=list(MODES), default=MODE_SEQUENTIAL)
    auto_sub.add_parser("stop")
    auto_sub.add_parser("status")
    run = auto_sub.add_parser("run")
    run.add_argument("--interval", type=float, default=300.0, help="Seconds between batches.")
    run.add_argument("--max-ticks", type=int, default=None)

    return parser


def status_lines(container) -> list[str]:
    cursors = container.state.list_cursors()
    lines = []
    for stream in Stream:
        state = container.orchestrator.stream_state(stream)
        page = cursors.get(stream.value)
        lines.append(f"{stream.value}: {state.value}" + (f" next_page={page}" if page else ""))
    lines.append(f"state db: {container.state.integrity_check()}")
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(settings.paths.logs_dir, level=getattr(logging, args.log_level))

    try:
        container = build_container(settings)
        if args.command == "full":
            print(container.sync.full_sync(Stream(args.stream)))
        elif args.command == "test":
            print(container.sync.test_sync(Stream(args.stream), pages=args.pages))
        elif args.command == "batch":
            print(container.orchestrator.run_batch(Stream(args.stream)))
        elif args.command == "restart":
            container.orchestrator.restart(Stream(args.stream))
            print(f"{args.stream}: cursor reset to page 1")
        elif args.command == "margins":
            print(container.margins.recompute())
        elif args.command == "status":
            print("\n".join(status_lines(container)))
        elif args.command == "auto":
            scheduler = container.scheduler
            if args.action == "start":
                state = scheduler.start(args.mode)
            elif args.action == "stop":
                state = scheduler.stop()
            elif args.action == "run":
                state = scheduler.run(args.interval, max_ticks=args.max_ticks)
            else:
                state = scheduler.status()
            for name, value in asdict(state).items():
                print(f"{name}: {value.value if isinstance(value, Stream) else value}")
    except AppError as e:
        log.exception("command_failed command=%s", args.command)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
