#!/usr/bin/env python3
"""
Materials Portal -- maintenance commands for the auth database.

Usage:
  python main.py create-admin --email admin@example.com
  python main.py create-admin --email root@example.com --role superadmin
  python main.py create-admin --email admin@example.com --password 'S3cret-pass'
  python main.py sweep-revocations

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the auth database (default: sqlite:///portal_auth.db)
  JWT_SECRET     Required unless DEBUG=true (the same settings as the API)
  BCRYPT_ROUNDS  bcrypt work factor for new password hashes (default: 10)
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import ADMIN_ROLES, ROLE_ADMIN, Identity, normalize_email
from auth.passwords import hash_password
from auth.revocation import RevocationLedger
from auth.store import IdentityStore
from core.config import get_settings


def create_admin(
    store: IdentityStore,
    email: str,
    password: str,
    role: str = ROLE_ADMIN,
    rounds: int = 10,
) -> Optional[int]:
    """Create an admin-capable identity. Returns its id, or None if the email is taken."""
    email = normalize_email(email)
    existing = store.find_by_email(email)
    if existing is not None:
        print(f"  [!] Identity already exists: {existing.email} (role: {existing.role})")
        return None
    try:
        identity_id = store.create_identity(
            Identity(email=email, role=role, hashed_password=hash_password(password, rounds))
        )
    except IntegrityError:
        print(f"  [!] Identity already exists: {email}")
        return None
    print(f"  Created {role} {email} (id {identity_id}).")
    return identity_id


def sweep_revocations(ledger: RevocationLedger) -> int:
    removed = ledger.sweep_expired()
    print(f"  Removed {removed} expired revoked token(s).")
    return removed


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="portal",
        description="Maintenance commands for the materials portal auth database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email admin@example.com
  python main.py create-admin --email root@example.com --role superadmin
  python main.py sweep-revocations
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin_parser = sub.add_parser("create-admin", help="Create an admin or superadmin identity")
    admin_parser.add_argument("--email", required=True, help="Login email (stored lower-cased)")
    admin_parser.add_argument(
        "--password",
        default=None,
        help="Password (prompted for if omitted, so it stays out of shell history)",
    )
    admin_parser.add_argument(
        "--role",
        choices=sorted(ADMIN_ROLES),
        default=ROLE_ADMIN,
        help="Role to grant (default: admin)",
    )

    sub.add_parser("sweep-revocations", help="Delete revoked-token entries past their expiry")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    settings = get_settings()
    store = IdentityStore(settings.database_url)
    try:
        if args.command == "create-admin":
            password = args.password or getpass.getpass("Password: ")
            if not password:
                print("  [!] A password is required.")
                return 1
            create_admin(store, args.email, password, role=args.role, rounds=settings.bcrypt_rounds)
        else:
            sweep_revocations(RevocationLedger(engine=store.engine))
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
