"""
qorcron · Admin CLI.

Usage: qorcron list
       qorcron kill <job_id>
       qorcron remove <job_id>
       qorcron --config /path/to/config.yaml list
       python -m qorcron --version
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from qorcron import __version__
from qorcron.errors import JobNotFoundError, QorCronError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parses command line arguments."""
    parser = argparse.ArgumentParser(
        prog="qorcron",
        description="qorcron · inspect and manage jobs tracked in the crontab",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"qorcron v{__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: ~/.qorcron/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the configured log level",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("list", help="Show jobs owned by qorcron")
    kill = commands.add_parser("kill", help="Terminate a running job and drop it")
    kill.add_argument("job_id")
    remove = commands.add_parser("remove", help="Drop a job that is not running")
    remove.add_argument("job_id")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)

    from qorcron.config import load_config
    from qorcron.models import JobDescriptor
    from qorcron.store import CronStore
    from qorcron.utils.logging import setup_logging

    try:
        config = load_config(args.config)
    except QorCronError as exc:
        print(f"qorcron: {exc}", file=sys.stderr)
        return 2

    setup_logging(
        level=args.log_level or config.logging.level,
        log_dir=config.logging.log_dir,
        json_logs=config.logging.json_logs,
    )
    store = CronStore.from_config(config)

    try:
        if args.command == "list":
            for job in store.list_jobs():
                state = f"pid={job.pid}" if job.started else "not started"
                print(f"{job.job_id}\t{state}")
        elif args.command == "kill":
            store.kill(JobDescriptor(job_id=args.job_id))
            print(f"killed {args.job_id}")
        elif args.command == "remove":
            try:
                store.remove(JobDescriptor(job_id=args.job_id))
            except JobNotFoundError as exc:
                # remove() reports not-found even after dropping a record
                if not exc.details.get("marked"):
                    raise
            print(f"removed {args.job_id}")
    except QorCronError as exc:
        print(f"qorcron: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
