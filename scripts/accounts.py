#!/usr/bin/env python3
"""Manage backend accounts in the local SQLite database.

Usage examples:
    # Create a free account and print its bearer token
    python scripts/accounts.py create alice

    # Create an admin on the premium plan
    python scripts/accounts.py create ops --plan premium --admin

    # Upgrade an existing account
    python scripts/accounts.py set-plan alice premium

    # Show one account, or all of them
    python scripts/accounts.py show alice
    python scripts/accounts.py show

    # Zero the monthly conversation counter
    python scripts/accounts.py reset alice
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from agentdesk.chat.models import Plan
from agentdesk.server.accounts import Account, AccountStore


def format_account(account: Account) -> str:
    """Format one account as a single display line."""
    admin = " admin" if account.is_admin else ""
    return (
        f"{account.user_id:20s} {account.plan:10s} "
        f"{account.conversations_used:5d} used  resets {account.window_reset_at}{admin}"
    )


async def run(args: argparse.Namespace) -> int:
    store = AccountStore(db_path=Path(args.db) if args.db else None)

    if args.command == "create":
        if await store.get_account(args.user_id) is not None:
            print(f"ERROR: account {args.user_id!r} already exists", file=sys.stderr)
            return 1
        token = await store.create(args.user_id, Plan(args.plan), is_admin=args.admin)
        print(f"Created {args.user_id} ({args.plan})")
        print(f"Token: {token}")
        return 0

    if args.command == "set-plan":
        if not await store.set_plan(args.user_id, Plan(args.plan)):
            print(f"ERROR: no account {args.user_id!r}", file=sys.stderr)
            return 1
        print(f"{args.user_id} is now on {args.plan}")
        return 0

    if args.command == "reset":
        if not await store.reset_conversations(args.user_id):
            print(f"ERROR: no account {args.user_id!r}", file=sys.stderr)
            return 1
        print(f"Reset conversations for {args.user_id}")
        return 0

    # show
    if args.user_id:
        account = await store.get_account(args.user_id)
        accounts = [account] if account else []
    else:
        accounts = await store.list_accounts()
    if not accounts:
        print("No accounts found.")
        return 0
    for account in accounts:
        print(format_account(account))
    return 0


def main() -> None:
    plans = [str(p) for p in Plan]
    parser = argparse.ArgumentParser(description="Manage agentdesk accounts")
    parser.add_argument("--db", help="SQLite database path (default: DATABASE_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create an account and print its token")
    create.add_argument("user_id")
    create.add_argument("--plan", choices=plans, default="free")
    create.add_argument("--admin", action="store_true", help="Grant admin dashboard access")

    set_plan = sub.add_parser("set-plan", help="Change an account's plan")
    set_plan.add_argument("user_id")
    set_plan.add_argument("plan", choices=plans)

    show = sub.add_parser("show", help="Show one account or all accounts")
    show.add_argument("user_id", nargs="?")

    reset = sub.add_parser("reset", help="Zero an account's conversation counter")
    reset.add_argument("user_id")

    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
