"""
Create tables for local development and optionally seed a demo account.

Production databases are managed by Alembic (scripts/release.py); this script
is for sqlite/dev setups.

Usage:
  python scripts/init_db.py
  DEMO_EMAIL=me@example.com DEMO_PASSWORD=secret python scripts/init_db.py
"""
import os
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.taskmate.models import Base, User  # noqa: E402
from scripts._db_utils import create_script_engine, script_database_url, script_session  # noqa: E402


def create_tables(*, database_url: str | None = None) -> None:
    engine = create_script_engine(script_database_url(database_url))
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def seed_demo_user(*, database_url: str | None = None) -> None:
    """
    Seed a demo user in an idempotent way when DEMO_EMAIL is set.
    Does NOT overwrite an existing user's password.
    """
    email = (os.environ.get("DEMO_EMAIL") or "").strip().lower()
    if not email:
        return
    password = os.environ.get("DEMO_PASSWORD") or "change-me"
    name = (os.environ.get("DEMO_NAME") or "Demo User").strip()

    with script_session(script_database_url(database_url)) as s:
        user = s.query(User).filter(User.email == email).one_or_none()
        if user:
            print(f"Demo user already exists: {email}")
            return
        now = datetime.utcnow()
        s.add(
            User(
                name=name,
                email=email,
                password_hash=generate_password_hash(password),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
    print(f"Demo user created: {email}")


def main() -> None:
    load_dotenv()
    create_tables()
    print("Initialized database tables.")
    seed_demo_user()


if __name__ == "__main__":
    main()
