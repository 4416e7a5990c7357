#!/usr/bin/env python3
"""
Degenius -- operator commands for the account database.

Usage:
  python main.py create-admin --kind student --email ops@degenius.com --first-name Ada --last-name Lovelace
  python main.py create-admin --kind investor --email ops@degenius.com --first-name Ada --last-name Lovelace --password 'Str0ng!pass'
  python main.py purge-tokens

Admins cannot register through the API; this is the only way to create one.
The account is created already verified.

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the account database (default: sqlite file at the repo root)
  SECRET_KEY    Required unless DEBUG=true (tokens module validates it on import)
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.models import Role, User, UserKind
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.errors import AppError
from core.validation import FieldSpec, clean_fields, require_email, require_strong_password

_ADMIN_FIELDS = (
    FieldSpec("first_name", "first name", required=True),
    FieldSpec("last_name", "last name", required=True),
)


def _read_password(given: Optional[str]) -> tuple[str, str]:
    """Return (password, confirmation). Prompts twice when --password is omitted."""
    if given is not None:
        return given, given
    return getpass.getpass("Password: "), getpass.getpass("Confirm password: ")


def create_admin(store: UserStore, kind: UserKind, email: str, first_name: str, last_name: str, password: str, confirm: str) -> User:
    """Validate the inputs with the registration rules and insert a verified admin."""
    fields = clean_fields({"first_name": first_name, "last_name": last_name}, _ADMIN_FIELDS)
    email = require_email(email)
    require_strong_password(password, confirm)
    user = User(
        kind=kind,
        role=Role.admin,
        first_name=fields["first_name"],
        last_name=fields["last_name"],
        email=email,
        hashed_password=hash_password(password),
        is_verified=True,
    )
    return store.create_user(user)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="degenius",
        description="Operator commands for the Degenius account database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --kind student --email ops@degenius.com --first-name Ada --last-name Lovelace
  python main.py purge-tokens
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = sub.add_parser("create-admin", help="Create a verified admin account")
    admin.add_argument(
        "--kind",
        choices=[k.value for k in UserKind],
        default=UserKind.student.value,
        help="Collection the admin lives in (default: student). Admins are recognized on both.",
    )
    admin.add_argument("--email", required=True)
    admin.add_argument("--first-name", required=True)
    admin.add_argument("--last-name", required=True)
    admin.add_argument(
        "--password",
        default=None,
        help="Password (prompted for when omitted, which keeps it out of shell history)",
    )

    sub.add_parser("purge-tokens", help="Delete expired verification and reset tokens")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()
    store = UserStore(settings.database_url, token_ttl_seconds=settings.action_token_ttl_seconds)
    try:
        if args.command == "create-admin":
            password, confirm = _read_password(args.password)
            try:
                user = create_admin(
                    store,
                    UserKind(args.kind),
                    args.email,
                    args.first_name,
                    args.last_name,
                    password,
                    confirm,
                )
            except AppError as exc:
                print(f"  [!] {exc.message}", file=sys.stderr)
                return 1
            print(f"  Admin {user.email} created (id={user.id}, kind={user.kind.value}).")
        else:
            removed = store.purge_expired_tokens()
            print(f"  {removed} expired token(s) removed.")
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
