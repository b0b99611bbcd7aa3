"""CLI entry point for membership-lifecycle.

Usage:
    membership-lifecycle run             # Connect to Discord and manage memberships
    membership-lifecycle list            # Show stored grants
    membership-lifecycle sweep-preview   # Show what the next sweep would do
    membership-lifecycle --version       # Show version
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from membership_lifecycle import __version__
from membership_lifecycle.config import DEFAULT_CONFIG_PATH, load_config
from membership_lifecycle.errors import ConfigurationError, StoreCorruptedError
from membership_lifecycle.grants import utc_now
from membership_lifecycle.notifications import format_time_left
from membership_lifecycle.store import JsonGrantStore
from membership_lifecycle.sweeper import Transition, classify

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="membership-lifecycle",
        description="Time-limited group memberships with reminders and automatic expiry",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("MEMBERSHIP_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO, or $MEMBERSHIP_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command")

    for name, help_text in (
        ("run", "Connect to Discord and manage memberships"),
        ("list", "List stored grants"),
        ("sweep-preview", "Show which grants the next sweep would remind or expire"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--config",
            type=str,
            default=DEFAULT_CONFIG_PATH,
            help=f"Path to the YAML config file (default: {DEFAULT_CONFIG_PATH})",
        )

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if args.command == "run":
            return run(args.config)
        if args.command == "list":
            return list_grants(args.config)
        return sweep_preview(args.config)
    except (ConfigurationError, StoreCorruptedError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run(config_path: str) -> int:
    """Run the membership manager until interrupted."""
    from membership_lifecycle.app import MembershipApp

    config = load_config(config_path)
    app = MembershipApp(config)
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        pass
    return 0


def list_grants(config_path: str) -> int:
    """Print every stored grant."""
    config = load_config(config_path, require_credentials=False)
    store = JsonGrantStore(config.data_file)
    now = utc_now()

    grants = sorted(store.all(), key=lambda g: g.expires_at)
    if not grants:
        print("No memberships stored.")
        return 0

    for grant in grants:
        left = grant.time_left(now)
        status = "expired" if grant.is_expired(now) else f"{format_time_left(left)} left"
        reminded = "reminded" if grant.reminded else "not reminded"
        print(
            f"{grant.subject_id}  {grant.group_id}  "
            f"{grant.expires_at:%Y-%m-%d %H:%M} UTC  {status}  {reminded}"
        )
    return 0


def sweep_preview(config_path: str) -> int:
    """Print the transitions the next sweep would make, without side effects."""
    config = load_config(config_path, require_credentials=False)
    store = JsonGrantStore(config.data_file)
    now = utc_now()

    pending = [
        (grant, classify(grant, now, config.reminder_window))
        for grant in store.all()
    ]
    pending = [(g, t) for g, t in pending if t is not Transition.NONE]

    if not pending:
        print("Next sweep: nothing to do.")
        return 0

    for grant, transition in sorted(pending, key=lambda item: item[0].expires_at):
        print(f"{transition.value:6}  {grant.subject_id}  {grant.group_id}  {grant.expires_at:%Y-%m-%d %H:%M} UTC")
    return 0


if __name__ == "__main__":
    sys.exit(main())
