"""
Book Repository for Bookshelf

Per-user book storage and the library listing query:
- Filtering (search, status, tag, shelf)
- Sorting and pagination
- Status counts for the filter bar
- Default-shelf placement of new books

Design Decisions:
1. Owner predicate on every statement: a book that exists but belongs to
   someone else behaves exactly like a missing one
2. authors/tags are JSON arrays; text matching runs against their JSON
   text, which keeps the query portable across SQLite and PostgreSQL
3. Status counts reuse the list filters minus status, so the counts
   describe "what you'd get if you picked that status"
"""

import json
from dataclasses import dataclass
from typing import Optional, Any

from loguru import logger
from sqlalchemy import select, delete, func, or_, cast, String
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Book,
    Shelf,
    ShelfBook,
    BOOK_STATUSES,
    STATUS_DEFAULT_SHELVES,
)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Largest page whose offset still fits a signed 64-bit integer
MAX_PAGE = (2 ** 63 - 1) // MAX_PAGE_SIZE

# Characters that only ever make up the list structure of stored JSON text
JSON_LIST_PUNCTUATION = "[]\", "

SORT_OPTIONS = ("recently_added", "title", "author", "rating", "progress")

# Columns a create/update payload may set
BOOK_FIELDS = (
    "title",
    "authors",
    "isbn",
    "publisher",
    "year",
    "cover_url",
    "category",
    "tags",
    "description_notes",
    "status",
    "rating",
    "total_pages",
    "current_page",
    "start_date",
    "end_date",
)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class BookQuery:
    """
    Listing parameters.

    page/limit are clamped rather than rejected: limit to [1, 100],
    page to [1, MAX_PAGE].
    """

    search: Optional[str] = None
    status: Optional[str] = None
    tag: Optional[str] = None
    shelf_id: Optional[int] = None
    sort: str = "recently_added"
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        self.page = min(MAX_PAGE, max(1, int(self.page or 1)))
        self.limit = min(MAX_PAGE_SIZE, max(1, int(self.limit or DEFAULT_PAGE_SIZE)))

        self.search = (self.search or "").strip() or None
        self.tag = (self.tag or "").strip() or None

        if self.sort not in SORT_OPTIONS:
            raise ValueError(f"Unknown sort: {self.sort}")
        if self.status is not None and self.status not in BOOK_STATUSES:
            raise ValueError(f"Unknown status: {self.status}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class BookRepository:
    """
    Repository for a user's books.

    Works inside the caller's session; writes are flushed, not committed.

    Usage:
        repo = BookRepository(session)

        book = await repo.create(user_id, {"title": "Dune", "status": "reading"})
        await session.commit()

        books, total = await repo.list_books(user_id, BookQuery(status="reading"))
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, user_id: int, book_id: int) -> Optional[Book]:
        """Get a book if it exists and belongs to the user."""
        stmt = select(Book).where(Book.id == book_id, Book.user_id == user_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    def _filter_conditions(
        self,
        user_id: int,
        query: BookQuery,
        include_status: bool = True,
    ) -> list:
        conditions = [Book.user_id == user_id]

        if query.search:
            pattern = f"%{escape_like(query.search)}%"
            matches = [
                Book.title.ilike(pattern, escape="\\"),
                Book.category.ilike(pattern, escape="\\"),
            ]
            if query.search.strip(JSON_LIST_PUNCTUATION):
                # Quotes in the term are JSON-escaped, so a match cannot span two elements
                json_pattern = f"%{escape_like(json.dumps(query.search, ensure_ascii=False)[1:-1])}%"
                matches += [
                    cast(Book.authors, String).ilike(json_pattern, escape="\\"),
                    cast(Book.tags, String).ilike(json_pattern, escape="\\"),
                ]
            conditions.append(or_(*matches))

        if include_status and query.status:
            conditions.append(Book.status == query.status)

        if query.tag:
            # Match one whole element of the JSON array, quotes included
            needle = json.dumps(query.tag, ensure_ascii=False)
            conditions.append(
                cast(Book.tags, String).like(f"%{escape_like(needle)}%", escape="\\")
            )

        if query.shelf_id is not None:
            conditions.append(Book.id.in_(
                select(ShelfBook.book_id).where(ShelfBook.shelf_id == query.shelf_id)
            ))

        return conditions

    @staticmethod
    def _order_by(sort: str) -> list:
        if sort == "title":
            return [func.lower(Book.title).asc(), Book.id.asc()]
        if sort == "author":
            # JSON text starts with the first author's name
            return [
                func.lower(cast(Book.authors, String)).asc(),
                func.lower(Book.title).asc(),
                Book.id.asc(),
            ]
        if sort == "rating":
            return [
                Book.rating.is_(None).asc(),
                Book.rating.desc(),
                func.lower(Book.title).asc(),
                Book.id.asc(),
            ]
        if sort == "progress":
            return [
                Book.current_page.is_(None).asc(),
                Book.current_page.desc(),
                Book.total_pages.asc(),
                Book.id.asc(),
            ]
        return [Book.created_at.desc(), Book.id.desc()]

    async def list_books(self, user_id: int, query: BookQuery) -> tuple[list[Book], int]:
        """
        List a user's books with filtering, sorting and pagination.

        Returns:
            (page of books, total matching count)
        """
        conditions = self._filter_conditions(user_id, query)

        count_stmt = select(func.count()).select_from(Book).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Book)
            .where(*conditions)
            .order_by(*self._order_by(query.sort))
            .offset(query.offset)
            .limit(query.limit)
        )
        books = list((await self.session.execute(stmt)).scalars().all())

        return books, total

    async def status_counts(self, user_id: int, query: BookQuery) -> dict[str, int]:
        """
        Count books per status under the same filters, ignoring the status filter.

        Every status is present in the result, zero when there are none.
        """
        conditions = self._filter_conditions(user_id, query, include_status=False)
        stmt = (
            select(Book.status, func.count())
            .where(*conditions)
            .group_by(Book.status)
        )

        counts = {status: 0 for status in BOOK_STATUSES}
        for status, count in (await self.session.execute(stmt)).all():
            if status in counts:
                counts[status] = count
        return counts

    async def shelf_ids(self, book_id: int) -> list[int]:
        """Shelves a book sits on."""
        stmt = (
            select(ShelfBook.shelf_id)
            .where(ShelfBook.book_id == book_id)
            .order_by(ShelfBook.shelf_id)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _values(data: dict[str, Any]) -> dict[str, Any]:
        values = {key: data.get(key) for key in BOOK_FIELDS}
        values["authors"] = list(values["authors"] or [])
        values["tags"] = list(values["tags"] or [])
        values["status"] = values["status"] or "to_read"
        return values

    async def create(self, user_id: int, data: dict[str, Any]) -> Book:
        """
        Add a book and, for to_read/reading/completed, put it on the
        user's default shelf of the same name.
        """
        book = Book(user_id=user_id, **self._values(data))
        self.session.add(book)
        await self.session.flush()

        shelf_name = STATUS_DEFAULT_SHELVES.get(book.status)
        if shelf_name:
            stmt = select(Shelf.id).where(
                Shelf.user_id == user_id,
                Shelf.is_default.is_(True),
                Shelf.name == shelf_name,
            )
            shelf_id = (await self.session.execute(stmt)).scalars().first()
            if shelf_id is not None:
                self.session.add(ShelfBook(shelf_id=shelf_id, book_id=book.id))
                await self.session.flush()
            else:
                logger.warning(f"User {user_id} has no default shelf '{shelf_name}'")

        await self.session.refresh(book)
        return book

    async def update(self, book: Book, data: dict[str, Any]) -> Book:
        """
        Replace every editable field.

        Shelf membership is left alone, whatever the new status.
        """
        for key, value in self._values(data).items():
            setattr(book, key, value)
        await self.session.flush()
        await self.session.refresh(book)
        return book

    async def delete(self, user_id: int, book_id: int) -> bool:
        """
        Delete a book and its shelf memberships.

        Returns:
            True if the book was deleted
        """
        owned = select(Book.id).where(Book.id == book_id, Book.user_id == user_id)
        await self.session.execute(delete(ShelfBook).where(ShelfBook.book_id.in_(owned)))
        result = await self.session.execute(
            delete(Book).where(Book.id == book_id, Book.user_id == user_id)
        )
        return result.rowcount > 0
