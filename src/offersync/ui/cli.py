from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from offersync.app import show_checkpoint, start_syncer
from offersync.config import ConfigurationError, configure_logging, load_settings
from offersync.domain.errors import SyncError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Keep an offer index in sync with the ledger")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Replay the ledger, then follow new events")
    sync.add_argument(
        "--replay-only",
        action="store_true",
        help="Stop after the replay instead of subscribing to live events",
    )
    sync.add_argument(
        "--keep-alive-on-failure",
        action="store_true",
        help="Log fatal sync errors and return instead of exiting with status 1",
    )

    checkpoint = subparsers.add_parser("checkpoint", help="Inspect the persisted checkpoint")
    checkpoint_sub = checkpoint.add_subparsers(dest="checkpoint_command", required=True)
    checkpoint_sub.add_parser("show", help="Print the last processed block")

    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    signal(SIGINT, sigint_handler)
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        settings = load_settings()
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    configure_logging(level=settings.sync.log_level, force=True)

    if parsed_args.command == "sync":
        result = start_syncer(
            settings,
            die_on_fail=False if parsed_args.keep_alive_on_failure else None,
            replay_only=parsed_args.replay_only,
        )
        if isinstance(result, SyncError):
            log.warning("Sync stopped after a fatal error; keeping the process alive")
        return

    try:
        block = show_checkpoint(settings)
    except SyncError:
        log.exception("Could not read the checkpoint")
        sys.exit(1)
    print("none" if block is None else block)  # noqa: T201


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    main()
