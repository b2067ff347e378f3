"""
Shelf Repository for Bookshelf

Named shelves and shelf membership. Default shelves are fixed: they cannot
be renamed or deleted.
"""

from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Shelf, ShelfBook


class ShelfRepository:
    """
    Repository for a user's shelves.

    Works inside the caller's session; writes are flushed, not committed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_shelves(self, user_id: int) -> list[Shelf]:
        """Default shelves first, then by name."""
        stmt = (
            select(Shelf)
            .where(Shelf.user_id == user_id)
            .order_by(Shelf.is_default.desc(), Shelf.name.asc(), Shelf.id.asc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get(self, user_id: int, shelf_id: int) -> Optional[Shelf]:
        """Get a shelf if it exists and belongs to the user."""
        stmt = select(Shelf).where(Shelf.id == shelf_id, Shelf.user_id == user_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create(self, user_id: int, name: str) -> Shelf:
        shelf = Shelf(user_id=user_id, name=name, is_default=False)
        self.session.add(shelf)
        await self.session.flush()
        await self.session.refresh(shelf)
        return shelf

    async def rename(self, shelf: Shelf, name: str) -> Shelf:
        shelf.name = name
        await self.session.flush()
        return shelf

    async def delete(self, shelf: Shelf) -> None:
        """Delete a shelf. Its books stay; only the memberships go."""
        await self.session.execute(delete(ShelfBook).where(ShelfBook.shelf_id == shelf.id))
        await self.session.execute(delete(Shelf).where(Shelf.id == shelf.id))

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    async def has_book(self, shelf_id: int, book_id: int) -> bool:
        stmt = select(ShelfBook).where(
            ShelfBook.shelf_id == shelf_id,
            ShelfBook.book_id == book_id,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none() is not None

    async def add_book(self, shelf_id: int, book_id: int) -> bool:
        """
        Put a book on a shelf.

        Returns:
            False if it was already there
        """
        if await self.has_book(shelf_id, book_id):
            return False

        self.session.add(ShelfBook(shelf_id=shelf_id, book_id=book_id))
        await self.session.flush()
        return True

    async def remove_book(self, shelf_id: int, book_id: int) -> bool:
        result = await self.session.execute(
            delete(ShelfBook).where(
                ShelfBook.shelf_id == shelf_id,
                ShelfBook.book_id == book_id,
            )
        )
        return result.rowcount > 0
