"""
User Repository for Bookshelf

Accounts, default shelves and password reset tokens.
"""

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    User,
    Book,
    Shelf,
    ShelfBook,
    PasswordResetToken,
    DEFAULT_SHELF_NAMES,
    utcnow,
)


class UserRepository:
    """
    Repository for user accounts.

    Works inside the caller's session; nothing here commits, so a route can
    group several calls into one transaction.

    Usage:
        repo = UserRepository(session)
        user = await repo.create_with_default_shelves("Ada", "ada@x.io", hash)
        await session.commit()
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Look up by normalized (lower-case) email."""
        stmt = select(User).where(User.email == email.strip().lower())
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_role(self, user_id: int) -> Optional[str]:
        """Current role straight from the table, or None if the user is gone."""
        stmt = select(User.role).where(User.id == user_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def list_all(self) -> list[User]:
        stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def create_with_default_shelves(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: str = "user",
    ) -> User:
        """
        Add a user and its three default shelves to the session.

        Both land in the same transaction; flushes so the id is known.
        """
        user = User(
            name=name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
        )
        self.session.add(user)
        await self.session.flush()

        self.session.add_all([
            Shelf(user_id=user.id, name=shelf_name, is_default=True)
            for shelf_name in DEFAULT_SHELF_NAMES
        ])
        await self.session.flush()

        return user

    async def update_profile(
        self,
        user: User,
        name: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> User:
        if name is not None:
            user.name = name
        if password_hash is not None:
            user.password_hash = password_hash
        await self.session.flush()
        return user

    async def set_role(self, user: User, role: str) -> User:
        user.role = role
        await self.session.flush()
        return user

    async def delete(self, user_id: int) -> bool:
        """
        Delete a user and everything they own.

        Returns:
            True if a user was deleted
        """
        owned_shelves = select(Shelf.id).where(Shelf.user_id == user_id)
        owned_books = select(Book.id).where(Book.user_id == user_id)

        await self.session.execute(
            delete(ShelfBook).where(
                ShelfBook.shelf_id.in_(owned_shelves) | ShelfBook.book_id.in_(owned_books)
            )
        )
        await self.session.execute(delete(Shelf).where(Shelf.user_id == user_id))
        await self.session.execute(delete(Book).where(Book.user_id == user_id))
        await self.session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id)
        )
        result = await self.session.execute(delete(User).where(User.id == user_id))

        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted user {user_id} and their library")
        return deleted

    # -------------------------------------------------------------------------
    # Password reset tokens
    # -------------------------------------------------------------------------

    async def add_reset_token(
        self,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetToken:
        record = PasswordResetToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_valid_reset_token(self, token_hash: str) -> Optional[PasswordResetToken]:
        """Persisted, unexpired reset token with this digest."""
        stmt = select(PasswordResetToken).where(
            PasswordResetToken.token_hash == token_hash,
            PasswordResetToken.expires_at > utcnow(),
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def consume_reset_token(self, record: PasswordResetToken, password_hash: str) -> bool:
        """
        Apply a new password and delete the token.

        The delete is conditional on the row still existing, so two
        concurrent resets with one token cannot both succeed.

        Returns:
            False if the token was already consumed.
        """
        result = await self.session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.id == record.id)
        )
        if result.rowcount == 0:
            return False

        await self.session.execute(
            update(User)
            .where(User.id == record.user_id)
            .values(password_hash=password_hash)
        )
        return True

    async def purge_expired_reset_tokens(self) -> int:
        result = await self.session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.expires_at <= utcnow())
        )
        return result.rowcount
