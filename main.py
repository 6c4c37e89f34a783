#!/usr/bin/env python3
"""
AuthGate -- account administration from the command line.

Usage:
  python main.py register alice@example.com
  python main.py status alice@example.com
  python main.py deactivate alice@example.com
  python main.py activate alice@example.com

Passwords are prompted for with getpass, never taken from argv.

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the user database (default: auth/authgate.db)
  BCRYPT_ROUNDS  Work factor for new password hashes (default: 12)
"""

import argparse
import asyncio
import getpass
import sys
from datetime import datetime, timezone
from typing import Optional

from auth.models import normalize_email
from auth.passwords import BcryptHasher
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings

_ACTOR = "cli"


def _open_store(db_url: Optional[str]) -> UserStore:
    url = db_url or get_settings().database_url
    return UserStore(url) if url else UserStore()


def _prompt_password() -> Optional[str]:
    password = getpass.getpass("Password: ")
    if getpass.getpass("Confirm password: ") != password:
        print("  [!] Passwords do not match.")
        return None
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return None
    return password


def cmd_register(store: UserStore, email: str) -> int:
    password = _prompt_password()
    if password is None:
        return 1
    service = AuthService(store, hasher=BcryptHasher(rounds=get_settings().bcrypt_rounds))
    result = asyncio.run(service.register(email, password))
    if not result.is_success:
        print(f"  [!] {result.error.message}")
        return 1
    print(f"  Created {result.value.email} (id {result.value.id})")
    return 0


def cmd_status(store: UserStore, email: str) -> int:
    user = store.get_by_email(normalize_email(email))
    if user is None:
        print(f"  [!] No account for {email}")
        return 1
    now = datetime.now(timezone.utc)
    if user.is_locked(now):
        minutes = AuthService.remaining_lockout_minutes(user, now)
        lock_state = f"locked ({minutes} min remaining)"
    else:
        lock_state = "unlocked"
    print(f"  Email:          {user.email}")
    print(f"  Id:             {user.id}")
    print(f"  Active:         {'yes' if user.is_active else 'no'}")
    print(f"  Lock:           {lock_state}")
    print(f"  Failed logins:  {user.login_attempts}")
    print(f"  Last login:     {user.last_login_at.isoformat() if user.last_login_at else 'never'}")
    return 0


def cmd_set_active(store: UserStore, email: str, active: bool) -> int:
    user = store.get_by_email(normalize_email(email))
    if user is None:
        print(f"  [!] No account for {email}")
        return 1
    store.set_active(user.id, active, updated_by=_ACTOR)
    print(f"  {user.email} {'activated' if active else 'deactivated'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="authgate", description="AuthGate account administration")
    parser.add_argument("--db-url", help="SQLAlchemy database URL (overrides DATABASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("register", "create an account"),
        ("status", "show lock state and login counters"),
        ("deactivate", "block an account from logging in"),
        ("activate", "re-enable a deactivated account"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("email")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    store = _open_store(args.db_url)
    try:
        if args.command == "register":
            return cmd_register(store, args.email)
        if args.command == "status":
            return cmd_status(store, args.email)
        return cmd_set_active(store, args.email, args.command == "activate")
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
