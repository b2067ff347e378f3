"""
Bookshelf - FastAPI Backend.

REST API for personal library tracking.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_db,
    get_current_user,
    require_admin,
)
from .schemas import (
    BookWrite,
    BookResponse,
    BookListResponse,
    ShelfResponse,
    UserResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_db",
    "get_current_user",
    "require_admin",
    # Schemas
    "BookWrite",
    "BookResponse",
    "BookListResponse",
    "ShelfResponse",
    "UserResponse",
    "HealthResponse",
    "ErrorResponse",
]
