"""
Account seeding for Bookshelf.

Used on startup (demo account) and by scripts/seed.py.
"""

from typing import Optional

from loguru import logger

from .security import get_password_hash
from .storage.database import Database
from .storage.models import User
from .storage.user_repository import UserRepository

DEMO_EMAIL = "demo@bookshelf.app"
DEMO_PASSWORD = "demo123"
DEMO_NAME = "Demo User"


async def ensure_demo_admin(database: Database, bcrypt_rounds: int = 12) -> User:
    """
    Make sure the demo account exists and is an admin.

    An existing demo account keeps its password; only its role is fixed up.
    """
    async with database.session() as session:
        repo = UserRepository(session)
        user = await repo.get_by_email(DEMO_EMAIL)

        if user is None:
            user = await repo.create_with_default_shelves(
                name=DEMO_NAME,
                email=DEMO_EMAIL,
                password_hash=get_password_hash(DEMO_PASSWORD, rounds=bcrypt_rounds),
                role="admin",
            )
            logger.info(f"Created demo admin {DEMO_EMAIL}")
        elif user.role != "admin":
            await repo.set_role(user, "admin")
            logger.info(f"Promoted demo account {DEMO_EMAIL} to admin")

        await session.commit()
        return user


async def promote_to_admin(database: Database, email: str) -> Optional[User]:
    """
    Give an existing account the admin role.

    Returns:
        The user, or None if no account has that email.
    """
    async with database.session() as session:
        repo = UserRepository(session)
        user = await repo.get_by_email(email)
        if user is None:
            return None

        await repo.set_role(user, "admin")
        await session.commit()

        logger.info(f"Promoted {user.email} to admin")
        return user
