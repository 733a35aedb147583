"""Operator commands for development fixtures.

Usage:
  python -m passport.admin_cli test-data insert [--force]
  python -m passport.admin_cli test-data clear [--yes]
  python -m passport.admin_cli test-data status
"""

import argparse
import sys

from .db import init_db
from .seed import clear_test_data, insert_test_data, seed_status
from .services import build_services


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="passport-admin", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    test_data = commands.add_parser("test-data", help="Manage development fixtures")
    actions = test_data.add_subparsers(dest="action", required=True)

    insert = actions.add_parser("insert", help="Insert fixture clients and role mappings")
    insert.add_argument("--force", action="store_true", help="Insert even if already inserted")

    clear = actions.add_parser("clear", help="Delete all clients, mappings and overrides")
    clear.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    actions.add_parser("status", help="Show whether fixtures were inserted")
    return parser


def _confirm(prompt: str) -> bool:
    answer = input(f"{prompt} [y/n] ")
    return answer.strip().lower() in ("y", "yes")


def main(argv=None):
    args = _build_parser().parse_args(argv if argv is not None else sys.argv[1:])
    init_db()
    services = build_services()

    if args.action == "insert":
        result = insert_test_data(services, force=args.force)
        if result.skipped:
            if result.reason == "clients_exist":
                print("Test data already exists in database. Use --force to re-insert.")
            else:
                print("Test data already inserted. Use --force to re-insert.")
            return 0
        print("Inserting passport test data...")
        print(f"  - Inserted {result.clients_inserted} clients")
        print(f"  - Inserted {result.mappings_inserted} coarse role mappings")
        print("Passport test data inserted successfully.")
        return 0

    if args.action == "clear":
        if not args.yes and not _confirm("This will delete ALL passport data. Are you sure?"):
            print("Aborted.")
            return 1
        clear_test_data(services)
        print("Passport test data cleared.")
        return 0

    status = seed_status(services)
    if status.inserted_at is not None:
        print(f"Test data was inserted on: {status.inserted_at:%Y-%m-%d %H:%M:%S}")
    else:
        print("Test data has not been inserted.")
    print(f"Current client count: {status.client_count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
