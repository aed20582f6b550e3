"""
Command line interface for reloadwatch.

Usage:
    reloadwatch watch config.yaml certs/server.pem --command "kill -HUP 1234"
    reloadwatch watch --mode timed --interval 5 /mnt/fuse/settings.json
    reloadwatch hash config.yaml certs/server.pem
"""

import argparse
import logging
import os
import shlex
import signal
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from .config import WatcherConfig
from .exceptions import FileReadError, WatcherConfigError, WatcherError
from .hash_store import hash_file
from .process import FileWatcher


logger = logging.getLogger("reloadwatch.cli")

ENV_MODE = "RELOADWATCH_MODE"
ENV_INTERVAL = "RELOADWATCH_INTERVAL"


def setup_logging(verbose: bool = False) -> None:
    """Configure console logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def config_from_args(args) -> WatcherConfig:
    """Build a watcher config from parsed arguments, falling back to env vars."""
    mode = args.mode or os.environ.get(ENV_MODE, "auto")

    interval = args.interval
    if interval is None:
        raw = os.environ.get(ENV_INTERVAL, "1.0")
        try:
            interval = float(raw)
        except ValueError:
            raise WatcherConfigError(f"invalid {ENV_INTERVAL}: {raw}") from None

    return WatcherConfig(mode=mode, interval_s=interval).validate()


def run_command(command: str) -> int:
    """
    Run the reload command.

    Args:
        command: Shell-style command line

    Returns:
        Exit code of the command, or 127 if it could not be started
    """
    logger.info(f"Running reload command: {command}")
    try:
        result = subprocess.run(shlex.split(command), check=False)
    except OSError as e:
        logger.error(f"Reload command failed to start: {e}")
        return 127

    if result.returncode != 0:
        logger.error(f"Reload command exited with status {result.returncode}")
    return result.returncode


def cmd_watch(args) -> int:
    """Watch files and reload on change."""
    try:
        config = config_from_args(args)
        watcher = FileWatcher(args.files, config=config)
    except WatcherError as e:
        logger.error(str(e))
        return 2

    shutdown = GracefulShutdown()

    with watcher:
        try:
            watcher.start_async()
        except WatcherError as e:
            logger.error(str(e))
            return 1

        for path in watcher.files:
            logger.info(f"  - {path}")
        logger.info("Press Ctrl+C to stop")

        while not shutdown.should_exit:
            if watcher.wait_for_change(timeout=0.5):
                if args.command:
                    run_command(args.command)
                else:
                    logger.info("reload requested")
            elif not watcher.is_running:
                logger.error("Watcher stopped unexpectedly")
                return 1

    logger.info("Watcher stopped")
    return 0


def cmd_hash(args) -> int:
    """Print the SHA-256 digest of each file."""
    status = 0
    for file in args.files:
        try:
            digest = hash_file(Path(file))
        except FileReadError as e:
            logger.error(str(e))
            status = 1
            continue
        print(f"{digest}  {file}")
    return status


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reloadwatch",
        description="Watch files for content changes and trigger reloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  reloadwatch watch app.yaml --command "systemctl reload myapp"
  reloadwatch watch --mode timed --interval 10 /mnt/share/app.yaml
  reloadwatch hash app.yaml
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command_name", required=True)

    watch_parser = subparsers.add_parser("watch", help="Watch files and reload on change")
    watch_parser.add_argument("files", nargs="+", help="Files to watch")
    watch_parser.add_argument(
        "--mode",
        choices=["auto", "timed"],
        default=None,
        help=f"Detection mode (or {ENV_MODE} env, default: auto)",
    )
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help=f"Seconds between checks in timed mode (or {ENV_INTERVAL} env, default: 1.0)",
    )
    watch_parser.add_argument("--command", default=None, help="Command to run on each change")
    watch_parser.set_defaults(func=cmd_watch)

    hash_parser = subparsers.add_parser("hash", help="Print the digest of each file")
    hash_parser.add_argument("files", nargs="+", help="Files to hash")
    hash_parser.set_defaults(func=cmd_hash)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))

    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
