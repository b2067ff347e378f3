"""
API Routes for Bookshelf

Route modules:
- auth: Registration, login, password reset
- books: Book CRUD and the library listing
- shelves: Shelves and shelf membership
- users: Profile and account administration
"""

from bookshelf.api.routes.auth import router as auth_router
from bookshelf.api.routes.books import router as books_router
from bookshelf.api.routes.shelves import router as shelves_router
from bookshelf.api.routes.users import router as users_router

__all__ = [
    "auth_router",
    "books_router",
    "shelves_router",
    "users_router",
]
