#!/usr/bin/env python3
"""
Script to inspect and administer users.

Usage:
    python scripts/manage_user.py show +94771234567
    python scripts/manage_user.py deactivate +94771234567
    python scripts/manage_user.py activate +94771234567
    python scripts/manage_user.py set-role +94771234567 driver
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rideauth.auth import ROLES, User, UserStore, normalize_phone
from rideauth.auth.users import USERS_FILENAME
from rideauth.config import load_config


def print_user(user: User):
    print(f"   Phone: {user.phone}")
    print(f"   User ID: {user.user_id}")
    print(f"   Name: {user.first_name} {user.last_name}".rstrip())
    print(f"   Role: {user.role}")
    print(f"   Verified: {'Yes' if user.is_verified else 'No'}")
    print(f"   Active: {'Yes' if user.is_active else 'No'}")
    print(f"   Last login: {user.last_login or 'never'}")


def main(argv: Optional[list] = None, store: Optional[UserStore] = None) -> int:
    parser = argparse.ArgumentParser(description="Administer ride auth users")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("show", "Show a user"),
        ("activate", "Re-enable a user"),
        ("deactivate", "Disable a user; existing tokens stop working"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("phone", help="Phone number (e.g., +94771234567)")

    set_role = sub.add_parser("set-role", help="Change a user's role")
    set_role.add_argument("phone", help="Phone number")
    set_role.add_argument("role", choices=ROLES)

    args = parser.parse_args(argv)

    if store is None:
        store = UserStore(load_config().data_dir / USERS_FILENAME)

    normalized = normalize_phone(args.phone)
    if not normalized:
        print(f"❌ Invalid phone number: {args.phone}")
        return 1

    user = store.get_by_phone(normalized)
    if not user:
        print(f"❌ No user with phone {normalized}")
        return 1

    if args.command == "activate":
        user = store.set_active(user.user_id, True)
        print("✅ User activated")
    elif args.command == "deactivate":
        user = store.set_active(user.user_id, False)
        print("✅ User deactivated")
    elif args.command == "set-role":
        user = store.set_role(user.user_id, args.role)
        print(f"✅ Role set to {args.role}")

    print_user(user)
    return 0


if __name__ == "__main__":
    sys.exit(main())
