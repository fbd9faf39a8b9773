#!/usr/bin/env python3
"""Create a user, or reactivate and reset the password of an existing one.

Usage:
  python scripts/create_user.py --email me@example.com --name "Me" --password secret
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

from werkzeug.security import generate_password_hash

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.taskmate.constants import EMAIL_RE, PASSWORD_MIN_LENGTH  # noqa: E402
from app.taskmate.models import User  # noqa: E402
from scripts._db_utils import script_database_url, script_session  # noqa: E402


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="Account email")
    parser.add_argument("--name", default="", help="Display name (required for new accounts)")
    parser.add_argument("--password", required=True, help="New password")
    args = parser.parse_args(argv)

    email = args.email.strip().lower()
    if not EMAIL_RE.match(email):
        print(f"Invalid email: {args.email}")
        sys.exit(1)
    if len(args.password) < PASSWORD_MIN_LENGTH:
        print(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        sys.exit(1)

    with script_session(script_database_url()) as s:
        now = datetime.utcnow()
        user = s.query(User).filter(User.email == email).one_or_none()
        if user:
            user.password_hash = generate_password_hash(args.password)
            user.is_active = True
            user.updated_at = now
            print(f"Password reset and account active: {email}")
            return
        if len(args.name.strip()) < 2:
            print("--name is required for new accounts (at least 2 characters)")
            sys.exit(1)
        s.add(
            User(
                name=args.name.strip(),
                email=email,
                password_hash=generate_password_hash(args.password),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
        print(f"User created: {email}")


if __name__ == "__main__":
    main()
