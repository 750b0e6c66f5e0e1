#!/usr/bin/env python3
"""Provision the blog's single admin user.

Writes (or replaces) the admin record in the SQLite database, or prints a
password hash to put in config.yml / a Docker secret instead.

Usage:
    python scripts/create_admin.py admin --db-path ./data/blog.db
    python scripts/create_admin.py admin --print-hash > secrets/admin_password_hash.txt
"""

import argparse
import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from auth import hash_password  # noqa: E402
from config import get_database_path, load_config  # noqa: E402
from storage import BlogDataStore  # noqa: E402
from validation import validate_login  # noqa: E402
from errors import ValidationError  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("username", help="Admin username (1-16 characters)")
    parser.add_argument(
        "--password",
        help="Admin password (1-16 characters); prompted for when omitted",
    )
    parser.add_argument(
        "--db-path",
        help="SQLite database path (defaults to the configured database.path)",
    )
    parser.add_argument(
        "--print-hash",
        action="store_true",
        help="Print the password hash instead of writing to the database",
    )
    args = parser.parse_args()

    password = args.password
    if password is None:
        password = getpass.getpass("Admin password: ")

    try:
        credentials = validate_login({"username": args.username, "password": password})
    except ValidationError as e:
        for entry in e.errors:
            print(entry["error"], file=sys.stderr)
        return 1

    password_hash = hash_password(credentials["password"])
    if args.print_hash:
        print(password_hash)
        return 0

    db_path = args.db_path or get_database_path(load_config())
    store = BlogDataStore(db_path)
    user_id = store.provision_admin(credentials["username"], password_hash)
    print(f"Admin user '{credentials['username']}' provisioned with id {user_id} in {db_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
