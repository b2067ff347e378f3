"""
User API Routes

Profile management for everyone, account administration for admins.
"""

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.api.dependencies import Settings, get_app_settings, get_db, get_current_user, require_admin
from bookshelf.api.middleware.error_handler import NotFoundError, ValidationError
from bookshelf.api.schemas import (
    ProfileUpdate,
    UserEnvelope,
    UserListResponse,
    UserResponse,
    MessageResponse,
    ErrorResponse,
)
from bookshelf.security import SessionClaims, get_password_hash
from bookshelf.storage.user_repository import UserRepository


router = APIRouter(prefix="/users", tags=["users"])


# =============================================================================
# Profile
# =============================================================================

@router.get("/profile", response_model=UserEnvelope)
async def get_profile(
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get(current_user.user_id)
    if user is None:
        raise NotFoundError("User")
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.put(
    "/profile",
    response_model=UserEnvelope,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid profile data"},
    },
)
async def update_profile(
    payload: ProfileUpdate,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Change name and/or password; omitted fields are kept."""
    repo = UserRepository(db)

    user = await repo.get(current_user.user_id)
    if user is None:
        raise NotFoundError("User")

    password_hash = None
    if payload.password is not None:
        password_hash = get_password_hash(payload.password, rounds=settings.bcrypt_rounds)

    user = await repo.update_profile(user, name=payload.name, password_hash=password_hash)
    await db.commit()

    if password_hash:
        logger.info(f"User {user.id} changed their password")

    return UserEnvelope(user=UserResponse.model_validate(user))


# =============================================================================
# Administration
# =============================================================================

@router.get(
    "/list",
    response_model=UserListResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Admin access required"},
    },
)
async def list_users(
    admin: SessionClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All accounts, newest first."""
    users = await UserRepository(db).list_all()
    return UserListResponse(users=[UserResponse.model_validate(u) for u in users])


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Cannot delete own account"},
        403: {"model": ErrorResponse, "description": "Admin access required"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
async def delete_user(
    user_id: int,
    admin: SessionClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete an account with all of its books and shelves."""
    if user_id == admin.user_id:
        raise ValidationError("You cannot delete your own account")

    if not await UserRepository(db).delete(user_id):
        raise NotFoundError("User")
    await db.commit()

    logger.info(f"Admin {admin.user_id} deleted user {user_id}")
    return MessageResponse(message="User deleted")
