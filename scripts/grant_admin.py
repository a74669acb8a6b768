#!/usr/bin/env python3
"""
Script to register an administrator.

Creates the admin profile if the uid has none yet and adds an active entry to
the admin registry. Both are required before the API allows admin actions.
"""
import sys
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import Database
from database.models import UserRole
from services.account_directory import AccountDirectory
from core.errors import RepositoryError
import config


def grant_admin():
    """Register an admin."""
    database = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        sqlite_busy_timeout=config.SQLITE_BUSY_TIMEOUT_SECONDS,
    )
    database.create_tables()

    print("Registering administrator...")
    print("=" * 50)

    uid = input("Identity uid: ").strip()
    email = input("Email: ").strip()
    display_name = input("Display name (optional): ").strip() or None

    if not uid or not email:
        print("Error: uid and email are required")
        sys.exit(1)

    try:
        with database.get_session() as db:
            existing = AccountDirectory.get_profile(db, uid)
            if existing is not None and existing.role != UserRole.ADMIN:
                print(f"\n✗ Error: {uid} already exists as {existing.role.value}; roles are fixed at creation")
                sys.exit(1)

            AccountDirectory.upsert_profile(db, uid, {
                "role": UserRole.ADMIN,
                "email": email,
                "display_name": display_name,
            })
            AccountDirectory.grant_admin(db, uid, active=True)
            user = AccountDirectory.get_profile(db, uid)
            print(f"\n✓ Administrator registered!")
            print(f"  uid: {user.uid}")
            print(f"  Email: {user.email}")
            print(f"  Role: {user.role.value}")
    except RepositoryError as e:
        print(f"\n✗ Error: {e.message}")
        sys.exit(1)
    finally:
        database.dispose()


if __name__ == "__main__":
    grant_admin()
