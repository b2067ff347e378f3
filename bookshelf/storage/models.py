"""
Database models for Bookshelf.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    Text,
    JSON,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


BOOK_STATUSES = ("to_read", "reading", "completed", "dropped")

# Created for every user at registration; order is display order.
DEFAULT_SHELF_NAMES = ("To Read", "Reading", "Completed")

# Statuses that place a new book on the default shelf of the same name.
STATUS_DEFAULT_SHELVES = {
    "to_read": "To Read",
    "reading": "Reading",
    "completed": "Completed",
}


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """User model for authentication."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )


class Book(Base):
    """A book in one user's library."""
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(500), nullable=False)
    # Ordered list of names
    authors = Column(JSON, nullable=False, default=list)
    isbn = Column(String(20))
    publisher = Column(String(255))
    year = Column(Integer)
    cover_url = Column(Text)
    category = Column(String(100))
    tags = Column(JSON, nullable=False, default=list)
    description_notes = Column(Text)

    status = Column(String(20), nullable=False, default="to_read")
    rating = Column(Integer)
    total_pages = Column(Integer)
    current_page = Column(Integer)
    start_date = Column(Date)
    end_date = Column(Date)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('to_read', 'reading', 'completed', 'dropped')",
            name="ck_books_status",
        ),
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="ck_books_rating",
        ),
        Index("idx_books_user_status", "user_id", "status"),
        Index("idx_books_user_created", "user_id", "created_at"),
        Index("idx_books_user_title", "user_id", "title"),
    )


class Shelf(Base):
    """Named grouping of a user's books."""
    __tablename__ = "shelves"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ShelfBook(Base):
    """Shelf membership; a book can sit on any number of shelves."""
    __tablename__ = "shelf_books"

    shelf_id = Column(
        Integer,
        ForeignKey("shelves.id", ondelete="CASCADE"),
        primary_key=True,
    )
    book_id = Column(
        Integer,
        ForeignKey("books.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )


class PasswordResetToken(Base):
    """Outstanding password reset; only the SHA-256 digest of the token is kept."""
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
