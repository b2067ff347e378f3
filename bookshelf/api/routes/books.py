"""
Book API Routes

CRUD operations on the caller's books plus the filtered library listing.
Every route is scoped to the authenticated user; other users' books are
reported as not found.
"""

from typing import Optional

from fastapi import APIRouter, Query, Depends, Response, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.api.dependencies import get_db, get_current_user, get_active_user
from bookshelf.api.middleware.error_handler import NotFoundError
from bookshelf.api.schemas import (
    BookWrite,
    BookResponse,
    BookListResponse,
    BookShelvesResponse,
    BookSort,
    BookStatus,
    StatusCounts,
    ErrorResponse,
)
from bookshelf.security import SessionClaims
from bookshelf.storage.book_repository import BookRepository, BookQuery, DEFAULT_PAGE_SIZE


router = APIRouter(prefix="/books", tags=["books"])


# =============================================================================
# Listing
# =============================================================================

@router.get(
    "",
    response_model=BookListResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid query parameters"},
    },
)
async def list_books(
    search: Optional[str] = Query(None, description="Text to find in title, authors, tags or category"),
    book_status: Optional[BookStatus] = Query(None, alias="status", description="Filter by status"),
    tag: Optional[str] = Query(None, description="Filter by tag"),
    shelf_id: Optional[int] = Query(None, alias="shelfId", description="Filter by shelf"),
    sort: BookSort = Query(BookSort.RECENTLY_ADDED, description="Sort order"),
    page: int = Query(1, description="Page number (1-based)"),
    limit: int = Query(DEFAULT_PAGE_SIZE, description="Items per page (max 100)"),
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's books with filtering, sorting, pagination and status counts."""
    query = BookQuery(
        search=search,
        status=book_status.value if book_status else None,
        tag=tag,
        shelf_id=shelf_id,
        sort=sort.value,
        page=page,
        limit=limit,
    )

    repo = BookRepository(db)
    books, total = await repo.list_books(current_user.user_id, query)
    counts = await repo.status_counts(current_user.user_id, query)

    return BookListResponse(
        books=[BookResponse.model_validate(book) for book in books],
        total=total,
        page=query.page,
        limit=query.limit,
        status_counts=StatusCounts(**counts),
    )


# =============================================================================
# CRUD Endpoints
# =============================================================================

@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid book data"},
    },
)
async def create_book(
    book: BookWrite,
    current_user: SessionClaims = Depends(get_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Add a book to the caller's library.

    New to_read, reading and completed books also land on the default
    shelf with the matching name.
    """
    created = await BookRepository(db).create(current_user.user_id, book.model_dump())
    await db.commit()

    logger.info(f"User {current_user.user_id} added book {created.id}: {created.title}")
    return created


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Book not found"},
    },
)
async def get_book(
    book_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a book by ID."""
    book = await BookRepository(db).get(current_user.user_id, book_id)
    if not book:
        raise NotFoundError("Book")
    return book


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid book data"},
        404: {"model": ErrorResponse, "description": "Book not found"},
    },
)
async def update_book(
    book_id: int,
    update: BookWrite,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace a book's fields. Shelf membership is not touched."""
    repo = BookRepository(db)

    book = await repo.get(current_user.user_id, book_id)
    if not book:
        raise NotFoundError("Book")

    updated = await repo.update(book, update.model_dump())
    await db.commit()

    return updated


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"model": ErrorResponse, "description": "Book not found"},
    },
)
async def delete_book(
    book_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a book and take it off every shelf."""
    deleted = await BookRepository(db).delete(current_user.user_id, book_id)
    if not deleted:
        raise NotFoundError("Book")
    await db.commit()

    logger.info(f"User {current_user.user_id} deleted book {book_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{book_id}/shelves",
    response_model=BookShelvesResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Book not found"},
    },
)
async def get_book_shelves(
    book_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """IDs of the shelves a book is on."""
    repo = BookRepository(db)

    if not await repo.get(current_user.user_id, book_id):
        raise NotFoundError("Book")

    return BookShelvesResponse(shelf_ids=await repo.shelf_ids(book_id))
