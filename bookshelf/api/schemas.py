"""
API Schemas for Bookshelf

Pydantic models for request validation and response serialization:
- Auth and user models
- Book models
- Shelf models

Design Decisions:
1. Separate Request/Response: Clear distinction between inputs and outputs
2. Lenient list inputs: authors/tags accept a list, a JSON array string or
   a single string, like the web client sends them
3. Empty strings in optional fields are treated as "not given"
"""

import json
from datetime import date, datetime
from typing import Optional, Any
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict


# =============================================================================
# Enums
# =============================================================================

class BookStatus(str, Enum):
    """Book reading status."""
    TO_READ = "to_read"
    READING = "reading"
    COMPLETED = "completed"
    DROPPED = "dropped"


class BookSort(str, Enum):
    """Orderings offered by the book list."""
    RECENTLY_ADDED = "recently_added"
    TITLE = "title"
    AUTHOR = "author"
    RATING = "rating"
    PROGRESS = "progress"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


# =============================================================================
# Helpers
# =============================================================================

def parse_string_list(value: Any) -> list[str]:
    """
    Coerce a list-ish input into a list of strings.

    Accepts a list, a JSON array string, or a plain string (one item).
    Items are stripped; blanks are dropped.
    """
    if value is None:
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = [value]
        value = parsed if isinstance(parsed, list) else [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError("must be a list of strings")

    items = []
    for item in value:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return items


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =============================================================================
# User / Auth Schemas
# =============================================================================

class UserResponse(BaseModel):
    """Public view of an account."""

    id: int
    name: str
    email: str
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserEnvelope(BaseModel):
    user: UserResponse


class UserListResponse(BaseModel):
    users: list[UserResponse]


class RegisterRequest(BaseModel):
    """Sign-up payload."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Ada Reader",
                "email": "ada@bookshelf.app",
                "password": "correct-horse",
            }
        }
    )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class AuthResponse(BaseModel):
    """User plus a fresh session token."""

    user: UserResponse
    token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
    # Web client origin, used as the base of the reset link
    origin: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("token", mode="before")
    @classmethod
    def strip_token(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ProfileUpdate(BaseModel):
    """Profile change; omitted fields stay as they are."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    password: Optional[str] = Field(None, min_length=8, max_length=128)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Book Schemas
# =============================================================================

class BookBase(BaseModel):
    """Book fields shared by create/update and responses."""

    title: str = Field(..., min_length=1, max_length=500)
    authors: list[str] = Field(default_factory=list)

    isbn: Optional[str] = Field(None, max_length=20)
    publisher: Optional[str] = Field(None, max_length=255)
    year: Optional[int] = Field(None, ge=0, le=2100)
    cover_url: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    description_notes: Optional[str] = None

    status: BookStatus = Field(BookStatus.TO_READ, validate_default=True)
    rating: Optional[int] = Field(None, ge=1, le=5)
    total_pages: Optional[int] = Field(None, ge=0)
    current_page: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    model_config = ConfigDict(use_enum_values=True)


class BookWrite(BookBase):
    """
    Book create/update request.

    PUT replaces the whole record, so the same payload serves both.
    """

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("authors", mode="before")
    @classmethod
    def coerce_authors(cls, value: Any) -> list[str]:
        return parse_string_list(value)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, value: Any) -> list[str]:
        # A set: keep first occurrence order
        return list(dict.fromkeys(parse_string_list(value)))

    @field_validator(
        "isbn", "publisher", "year", "cover_url", "category", "description_notes",
        "rating", "total_pages", "current_page", "start_date", "end_date",
        mode="before",
    )
    @classmethod
    def blank_is_none(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        return value.strip() if isinstance(value, str) else value

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, value: Any) -> Any:
        return BookStatus.TO_READ if value is None or value == "" else value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Dune",
                "authors": ["Frank Herbert"],
                "isbn": "9780441172719",
                "year": 1965,
                "category": "Science Fiction",
                "tags": ["classic", "space opera"],
                "status": "reading",
                "total_pages": 688,
                "current_page": 120,
            }
        }
    )


class BookResponse(BookBase):
    """Book response model."""

    id: int
    user_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatusCounts(BaseModel):
    """Number of books per status."""

    to_read: int = 0
    reading: int = 0
    completed: int = 0
    dropped: int = 0


class BookListResponse(BaseModel):
    """Paginated book list response."""

    books: list[BookResponse]
    total: int
    page: int
    limit: int
    status_counts: StatusCounts = Field(serialization_alias="statusCounts")


class BookShelvesResponse(BaseModel):
    shelf_ids: list[int] = Field(serialization_alias="shelfIds")


# =============================================================================
# Shelf Schemas
# =============================================================================

class ShelfWrite(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ShelfResponse(BaseModel):
    id: int
    user_id: int
    name: str
    is_default: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ShelfListResponse(BaseModel):
    shelves: list[ShelfResponse]


# =============================================================================
# Error Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    message: str
    code: str
    timestamp: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Not Found",
                "message": "Book not found",
                "code": "NOT_FOUND",
                "timestamp": "2025-01-20T12:00:00Z",
            }
        }
    )


# =============================================================================
# Health Check
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
