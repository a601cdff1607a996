"""
Database seeding script for the first admin.

Roles only change through an admin, so a fresh deployment needs one
admin account before anyone can approve riders.

Usage:
    python -m parcel_backend.seed_admin admin@example.com
"""

import asyncio
import sys
from typing import Optional

from sqlalchemy import select

from parcel_backend.app.core.config import settings
from parcel_backend.app.db.session import Database, build_database
from parcel_backend.app.models.user import User
from parcel_backend.app.models.enums import UserRole


async def seed_admin(email: str, database: Optional[Database] = None) -> User:
    """
    Create the user as ADMIN, or promote an existing user.

    Opens the configured database unless one is passed in; only a
    database opened here is disposed afterwards.
    """
    owned = database is None
    database = database or build_database(settings)
    try:
        return await _promote(database, email.lower())
    finally:
        if owned:
            await database.dispose()


async def _promote(database: Database, email: str) -> User:
    await database.create_all()
    
    async with database.session_factory() as db:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        
        if user and user.role == UserRole.ADMIN:
            print(f"ℹ️  {email} is already an admin, skipping seeding")
            return user
        
        if user:
            user.role = UserRole.ADMIN
            print(f"✅ Promoted {email} to admin")
        else:
            user = User(email=email, role=UserRole.ADMIN)
            db.add(user)
            print(f"✅ Created admin user {email}")
        
        await db.commit()
        await db.refresh(user)
        return user


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python -m parcel_backend.seed_admin <email>")
        sys.exit(1)
    asyncio.run(seed_admin(sys.argv[1]))
