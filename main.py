#!/usr/bin/env python3
"""
Registrar -- administration CLI.

The web UI and JSON API run under uvicorn (see asgi.py). This script covers
the chores that need to happen without a browser: first-run seeding and
creating or inspecting accounts directly against the credential store.

Usage:
  python main.py seed
  python main.py create-account alice alice@example.com --role admin
  python main.py list-accounts

Environment variables:
  AUTH_DB_URL / RECORDS_DB_URL   Override the default SQLite files.
  STRICT_ROLE_VALIDATION         false accepts any role name on create-account.
"""

import argparse
import getpass
import sys

from api.main import open_stores
from auth.errors import ProvisioningError
from auth.models import ROLE_NAMES
from auth.provisioning import register
from records.seed import seed_sample_data


def _cmd_seed(args: argparse.Namespace) -> int:
    accounts, records = open_stores()
    try:
        before = accounts.count()
        seed_sample_data(accounts, records)
        if before:
            print(f"  Accounts already present ({before}); sample accounts skipped.")
        else:
            print(f"  Seeded {accounts.count()} sample accounts.")
    finally:
        accounts.close()
        records.close()
    return 0


def _cmd_create_account(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    accounts, records = open_stores()
    try:
        account = register(accounts, args.username, args.email, password, args.role)
    except ProvisioningError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        accounts.close()
        records.close()
    print(f"  Created account {account.username!r} (id {account.id}) with {', '.join(sorted(account.roles))}.")
    return 0


def _cmd_list_accounts(args: argparse.Namespace) -> int:
    accounts, records = open_stores()
    try:
        rows = accounts.list_accounts()
    finally:
        accounts.close()
        records.close()
    if not rows:
        print("  No accounts.")
        return 0
    print(f"  {'ID':>4}  {'USERNAME':<20} {'ENABLED':<8} ROLES")
    for a in rows:
        print(f"  {a.id:>4}  {a.username:<20} {'yes' if a.enabled else 'no':<8} {', '.join(sorted(a.roles))}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="registrar",
        description="Administration commands for the Registrar academic records app.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Create the sample accounts and records if the stores are empty")
    seed.set_defaults(func=_cmd_seed)

    create = sub.add_parser("create-account", help="Create an account with a single role")
    create.add_argument("username")
    create.add_argument("email")
    create.add_argument(
        "--role",
        default="student",
        metavar="ROLE",
        help=f"One of {', '.join(r.lower() for r in ROLE_NAMES)} (default: student)",
    )
    create.add_argument(
        "--password",
        default=None,
        help="Password (prompted for when omitted; avoid passing it on the command line)",
    )
    create.set_defaults(func=_cmd_create_account)

    listing = sub.add_parser("list-accounts", help="Print every account with its roles")
    listing.set_defaults(func=_cmd_list_accounts)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
