"""
Storage Module for Bookshelf

Persistent storage for accounts and libraries:
- SQLAlchemy models (users, books, shelves, reset tokens)
- Async database handle
- Repositories scoped to one session
"""

from bookshelf.storage.models import (
    Base,
    User,
    Book,
    Shelf,
    ShelfBook,
    PasswordResetToken,
    BOOK_STATUSES,
    DEFAULT_SHELF_NAMES,
)
from bookshelf.storage.database import Database
from bookshelf.storage.book_repository import (
    BookRepository,
    BookQuery,
)
from bookshelf.storage.shelf_repository import ShelfRepository
from bookshelf.storage.user_repository import UserRepository

__all__ = [
    # Models
    "Base",
    "User",
    "Book",
    "Shelf",
    "ShelfBook",
    "PasswordResetToken",
    "BOOK_STATUSES",
    "DEFAULT_SHELF_NAMES",
    # Database
    "Database",
    # Repositories
    "BookRepository",
    "BookQuery",
    "ShelfRepository",
    "UserRepository",
]
