#!/usr/bin/env python3
"""
Linkcal Command Line Interface

Main entry point for the `linkcal` command.

Usage:
    linkcal sync --account-id ID [--forward-to ID]
    linkcal sync-all [--user-id ID] [--force]
    linkcal forward --source ID --target ID
    linkcal cleanup --account-id ID [--unlink]
    linkcal accounts [--user-id ID]
    linkcal --version

Every command prints a JSON result and exits non-zero on failure.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from linkcal import __version__
from linkcal.config import load_config
from linkcal.forwarder import delete_linkcal_events, forward_meetings, unlink_account
from linkcal.logging_config import setup_logging
from linkcal.store import MeetingStore
from linkcal.sync.engine import sync_account
from linkcal.sync.periodic import sync_all_linked_accounts


def _print(result: dict) -> int:
    print(json.dumps(result, indent=2, default=str))
    return 0 if result.get("success") else 1


def _context(args):
    config = load_config(Path(args.config) if args.config else None)
    db_path = args.db or config.database_path
    return config, MeetingStore(db_path)


def cmd_sync(args):
    """Sync one account, optionally forwarding afterwards."""
    config, store = _context(args)
    result = asyncio.run(sync_account(
        store,
        args.account_id,
        user_id=args.user_id,
        config=config,
        forward_to=args.forward_to,
    ))
    return _print(result.to_dict())


def cmd_sync_all(args):
    """Sync every due account."""
    config, store = _context(args)
    result = asyncio.run(sync_all_linked_accounts(
        store, user_id=args.user_id, force=args.force, config=config
    ))
    return _print(result)


def cmd_forward(args):
    """Forward placeholders from one account to another."""
    config, store = _context(args)
    result = asyncio.run(forward_meetings(
        store, args.source, args.target, user_id=args.user_id, config=config
    ))
    return _print(result)


def cmd_cleanup(args):
    """Delete placeholders from an account, optionally unlinking it."""
    config, store = _context(args)
    if args.unlink:
        result = asyncio.run(unlink_account(
            store, args.account_id, user_id=args.user_id, config=config
        ))
    else:
        result = asyncio.run(delete_linkcal_events(
            store, args.account_id, user_id=args.user_id, config=config
        ))
    return _print(result)


def cmd_accounts(args):
    """List linked accounts (refresh tokens are never printed)."""
    _, store = _context(args)
    accounts = store.list_linked_accounts(args.user_id)
    return _print({
        "success": True,
        "accounts": [a.to_dict() for a in accounts],
        "total": len(accounts),
    })


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="linkcal",
        description="Linkcal - sync and forward linked calendars",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )
    parser.add_argument("--config", default=None, help="Path to linkcal.yaml")
    parser.add_argument("--db", default=None, help="SQLite database path")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Sync subcommand
    sync_parser = subparsers.add_parser("sync", help="Sync one linked account")
    sync_parser.add_argument("--account-id", required=True, help="Linked account ID")
    sync_parser.add_argument("--user-id", default=None, help="Require this owner")
    sync_parser.add_argument(
        "--forward-to", default=None, help="Forward placeholders to this account afterwards"
    )
    sync_parser.set_defaults(func=cmd_sync)

    # Sync-all subcommand
    sync_all_parser = subparsers.add_parser("sync-all", help="Sync every due account")
    sync_all_parser.add_argument("--user-id", default=None, help="Only this user's accounts")
    sync_all_parser.add_argument(
        "--force", action="store_true", help="Ignore the sync interval"
    )
    sync_all_parser.set_defaults(func=cmd_sync_all)

    # Forward subcommand
    forward_parser = subparsers.add_parser(
        "forward", help="Create placeholders for source meetings on the target"
    )
    forward_parser.add_argument("--source", required=True, help="Source account ID")
    forward_parser.add_argument("--target", required=True, help="Target account ID")
    forward_parser.add_argument("--user-id", default=None, help="Require this owner")
    forward_parser.set_defaults(func=cmd_forward)

    # Cleanup subcommand
    cleanup_parser = subparsers.add_parser(
        "cleanup", help="Delete Linkcal placeholders from an account's calendar"
    )
    cleanup_parser.add_argument("--account-id", required=True, help="Linked account ID")
    cleanup_parser.add_argument("--user-id", default=None, help="Require this owner")
    cleanup_parser.add_argument(
        "--unlink", action="store_true", help="Also unlink the account"
    )
    cleanup_parser.set_defaults(func=cmd_cleanup)

    # Accounts subcommand
    accounts_parser = subparsers.add_parser("accounts", help="List linked accounts")
    accounts_parser.add_argument("--user-id", default=None, help="Only this user's accounts")
    accounts_parser.set_defaults(func=cmd_accounts)

    args = parser.parse_args(argv)

    # Handle --version at top level
    if args.version:
        print(f"linkcal {__version__}")
        return

    # If no command given, show help
    if not args.command:
        parser.print_help()
        return

    setup_logging(level=args.log_level)

    # Execute command
    result = args.func(args)

    # Commands may return an exit code
    if isinstance(result, int) and result != 0:
        sys.exit(result)


if __name__ == "__main__":
    main()
