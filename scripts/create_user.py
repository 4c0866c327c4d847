"""
Create or update a stock count account from CLI.
"""

from __future__ import annotations

import argparse
import getpass
import json

from sqlalchemy import select

from db.models import User, UserRole
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or update a login account.")
    parser.add_argument("username", help="Login name; also the value rows are assigned to.")
    parser.add_argument(
        "--role",
        choices=[UserRole.ADMIN, UserRole.USER],
        default=UserRole.USER,
        help="Account role (default: user).",
    )
    parser.add_argument(
        "--password",
        default=None,
        help="Password; prompted for when omitted.",
    )
    args = parser.parse_args()

    password = args.password or getpass.getpass(f"Password for {args.username}: ")
    if not password:
        parser.error("password must not be empty")

    with SessionLocal() as db:
        user = db.scalars(select(User).where(User.username == args.username)).one_or_none()
        created = user is None
        if user is None:
            user = User(username=args.username, password=password, role=args.role)
            db.add(user)
        else:
            user.password = password
            user.role = args.role
        db.commit()

    print(json.dumps({"username": args.username, "role": args.role, "created": created}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
