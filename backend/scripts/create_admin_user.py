"""
Script to create the first admin user for AssistLink.

Usage:
    python scripts/create_admin_user.py

Environment Variables Required:
    DATABASE_URL - PostgreSQL connection string
    REDIS_URL - Redis connection string
    SECRET_KEY - Application secret key
"""

import asyncio
import re
import sys
from getpass import getpass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from assistlink.core.database import AsyncSessionLocal
from assistlink.core.security import hash_password, UserRole
from assistlink.models.auth import User
from assistlink.schemas.requests import PHONE_PATTERN


def _prompt_password() -> str:
    while True:
        password = getpass("Enter admin password: ")
        password_confirm = getpass("Confirm admin password: ")

        if not password:
            print("Error: Password cannot be empty")
            continue

        if password != password_confirm:
            print("Error: Passwords do not match. Please try again.")
            continue

        if len(password) < 8:
            print("Error: Password must be at least 8 characters")
            continue

        return password


async def create_admin_user():
    """Create the first admin user interactively."""
    print("=" * 60)
    print("AssistLink Admin User Creation")
    print("=" * 60)
    print()

    username = input("Enter admin username [default: admin]: ").strip() or "admin"
    email = input("Enter admin email: ").strip()

    if not email:
        print("Error: Email is required")
        sys.exit(1)

    full_name = input("Enter admin full name [optional]: ").strip() or None
    phone = input("Enter admin phone [optional]: ").strip() or None
    if phone and not re.match(PHONE_PATTERN, phone):
        print(f"Error: '{phone}' is not a valid phone number")
        sys.exit(1)

    password = _prompt_password()

    print()
    print("Creating admin user...")

    try:
        async with AsyncSessionLocal() as db:
            stmt = select(User).where((User.username == username) | (User.email == email))
            result = await db.execute(stmt)
            if result.scalars().first():
                print(f"Error: User '{username}' or email '{email}' already exists")
                sys.exit(1)

            admin = User(
                username=username,
                email=email,
                hashed_password=hash_password(password),
                full_name=full_name,
                phone=phone,
                role=UserRole.ADMIN,
                is_active=True,
            )

            db.add(admin)
            await db.commit()
            await db.refresh(admin)

    except SQLAlchemyError as e:
        print(f"Error creating admin user: {e}")
        sys.exit(1)

    print()
    print("Admin user created.")
    print(f"Username: {admin.username}")
    print(f"Email: {admin.email}")
    print(f"Role: {admin.role}")
    print(f"ID: {admin.id}")
    print()
    print("You can now login at: POST /api/v1/auth/login")


if __name__ == "__main__":
    asyncio.run(create_admin_user())
