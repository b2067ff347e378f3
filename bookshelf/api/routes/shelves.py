"""
Shelf API Routes

Shelf CRUD and shelf membership for the caller's books.
"""

from fastapi import APIRouter, Depends, Response, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.api.dependencies import get_db, get_current_user, get_active_user
from bookshelf.api.middleware.error_handler import NotFoundError, ValidationError
from bookshelf.api.schemas import (
    ShelfWrite,
    ShelfResponse,
    ShelfListResponse,
    MessageResponse,
    ErrorResponse,
)
from bookshelf.security import SessionClaims
from bookshelf.storage.book_repository import BookRepository
from bookshelf.storage.models import Shelf
from bookshelf.storage.shelf_repository import ShelfRepository


router = APIRouter(prefix="/shelves", tags=["shelves"])


async def get_owned_shelf(repo: ShelfRepository, user_id: int, shelf_id: int) -> Shelf:
    shelf = await repo.get(user_id, shelf_id)
    if not shelf:
        raise NotFoundError("Shelf")
    return shelf


# =============================================================================
# Shelves
# =============================================================================

@router.get("", response_model=ShelfListResponse)
async def list_shelves(
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's shelves, default ones first."""
    shelves = await ShelfRepository(db).list_shelves(current_user.user_id)
    return ShelfListResponse(shelves=[ShelfResponse.model_validate(s) for s in shelves])


@router.post(
    "",
    response_model=ShelfResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid shelf name"},
    },
)
async def create_shelf(
    payload: ShelfWrite,
    current_user: SessionClaims = Depends(get_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a custom shelf."""
    shelf = await ShelfRepository(db).create(current_user.user_id, payload.name)
    await db.commit()

    logger.info(f"User {current_user.user_id} created shelf {shelf.id}: {shelf.name}")
    return shelf


@router.get(
    "/{shelf_id}",
    response_model=ShelfResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Shelf not found"},
    },
)
async def get_shelf(
    shelf_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_owned_shelf(ShelfRepository(db), current_user.user_id, shelf_id)


@router.put(
    "/{shelf_id}",
    response_model=ShelfResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Default shelves cannot be renamed"},
        404: {"model": ErrorResponse, "description": "Shelf not found"},
    },
)
async def rename_shelf(
    shelf_id: int,
    payload: ShelfWrite,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Rename a custom shelf."""
    repo = ShelfRepository(db)
    shelf = await get_owned_shelf(repo, current_user.user_id, shelf_id)

    if shelf.is_default:
        raise ValidationError("Default shelves cannot be renamed")

    shelf = await repo.rename(shelf, payload.name)
    await db.commit()
    return shelf


@router.delete(
    "/{shelf_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"model": ErrorResponse, "description": "Default shelves cannot be deleted"},
        404: {"model": ErrorResponse, "description": "Shelf not found"},
    },
)
async def delete_shelf(
    shelf_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a custom shelf. The books on it are kept."""
    repo = ShelfRepository(db)
    shelf = await get_owned_shelf(repo, current_user.user_id, shelf_id)

    if shelf.is_default:
        raise ValidationError("Default shelves cannot be deleted")

    await repo.delete(shelf)
    await db.commit()

    logger.info(f"User {current_user.user_id} deleted shelf {shelf_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Membership
# =============================================================================

@router.post(
    "/{shelf_id}/books/{book_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Shelf or book not found"},
    },
)
async def add_book_to_shelf(
    shelf_id: int,
    book_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Put a book on a shelf. Adding it twice is harmless."""
    repo = ShelfRepository(db)
    await get_owned_shelf(repo, current_user.user_id, shelf_id)

    if not await BookRepository(db).get(current_user.user_id, book_id):
        raise NotFoundError("Book")

    await repo.add_book(shelf_id, book_id)
    await db.commit()

    return MessageResponse(message="Book added to shelf")


@router.delete(
    "/{shelf_id}/books/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"model": ErrorResponse, "description": "Shelf or book not found"},
    },
)
async def remove_book_from_shelf(
    shelf_id: int,
    book_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Take a book off a shelf."""
    repo = ShelfRepository(db)
    await get_owned_shelf(repo, current_user.user_id, shelf_id)

    if not await BookRepository(db).get(current_user.user_id, book_id):
        raise NotFoundError("Book")

    await repo.remove_book(shelf_id, book_id)
    await db.commit()

    return Response(status_code=status.HTTP_204_NO_CONTENT)
