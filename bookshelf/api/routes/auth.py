"""
Authentication API Routes for Bookshelf.

Handles:
- User registration
- Login (session token issuance)
- Logout
- Password reset (request, redirect, completion)
- Current user retrieval
"""

from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode, urlparse

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.api.dependencies import (
    Settings,
    get_app_settings,
    get_db,
    get_mailer,
    get_current_user,
)
from bookshelf.api.middleware.error_handler import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from bookshelf.api.schemas import (
    AuthResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserEnvelope,
    UserResponse,
)
from bookshelf.mailer import Mailer
from bookshelf.security import (
    SessionClaims,
    TokenError,
    create_access_token,
    create_reset_token,
    decode_reset_token,
    get_password_hash,
    hash_reset_token,
    verify_password,
)
from bookshelf.storage.models import User
from bookshelf.storage.user_repository import UserRepository

router = APIRouter(prefix="/auth", tags=["auth"])

DUPLICATE_EMAIL_MESSAGE = "This email is already registered. Try logging in instead."
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token"
FORGOT_PASSWORD_MESSAGE = "If an account exists, you will receive reset instructions by email."


def issue_session_token(user: User, settings: Settings) -> str:
    return create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role,
        secret_key=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_delta=timedelta(minutes=settings.jwt_expires_minutes),
    )


def reset_link_base(origin: Optional[str], settings: Settings) -> str:
    """The caller's origin when it is an http(s) URL, else the configured frontend."""
    if origin:
        parsed = urlparse(origin.strip())
        if parsed.scheme in ("http", "https") and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
    return settings.frontend_url.rstrip("/")


# --- Endpoints ---

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid registration data"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Create an account with its three default shelves and log it in."""
    repo = UserRepository(db)

    if await repo.get_by_email(payload.email):
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

    password_hash = get_password_hash(payload.password, rounds=settings.bcrypt_rounds)

    try:
        user = await repo.create_with_default_shelves(
            name=payload.name,
            email=payload.email,
            password_hash=password_hash,
        )
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        await db.rollback()
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

    logger.info(f"Registered user {user.id} ({user.email})")

    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=issue_session_token(user, settings),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Login endpoint.

    Unknown email and wrong password are indistinguishable to the caller.
    """
    user = await UserRepository(db).get_by_email(payload.email)

    if not verify_password(payload.password, user.password_hash if user else None):
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=issue_session_token(user, settings),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout():
    """Sessions are stateless; the client drops its token."""
    return MessageResponse(message="Logged out")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Start a password reset.

    The answer is the same whether or not the account exists.
    """
    repo = UserRepository(db)
    user = await repo.get_by_email(payload.email)

    if user is None:
        logger.info("Password reset requested for unknown email")
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    token, expires_at = create_reset_token(
        email=user.email,
        secret_key=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_delta=timedelta(minutes=settings.reset_token_expires_minutes),
    )

    await repo.purge_expired_reset_tokens()
    await repo.add_reset_token(user.id, hash_reset_token(token), expires_at)
    await db.commit()

    base = reset_link_base(payload.origin or request.headers.get("Origin"), settings)
    reset_link = f"{base}/reset-password?{urlencode({'token': token})}"

    background_tasks.add_task(mailer.send_password_reset_email, user.email, reset_link)
    logger.info(f"Password reset issued for user {user.id}")

    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.get("/reset-redirect", include_in_schema=False)
async def reset_redirect(
    token: Optional[str] = Query(None),
    settings: Settings = Depends(get_app_settings),
):
    """Bounce a mailed link to the web client's reset page."""
    base = settings.frontend_url.rstrip("/")
    if token:
        url = f"{base}/reset-password?{urlencode({'token': token})}"
    else:
        url = f"{base}/"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired reset token"},
    },
)
async def reset_password(
    payload: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Set a new password with a reset token. Each token works once."""
    try:
        email = decode_reset_token(payload.token, settings.jwt_secret, settings.jwt_algorithm)
    except TokenError:
        raise ValidationError(INVALID_RESET_TOKEN_MESSAGE)

    repo = UserRepository(db)
    record = await repo.get_valid_reset_token(hash_reset_token(payload.token))
    if record is None:
        raise ValidationError(INVALID_RESET_TOKEN_MESSAGE)

    user = await repo.get(record.user_id)
    if user is None or user.email != email:
        raise ValidationError(INVALID_RESET_TOKEN_MESSAGE)

    password_hash = get_password_hash(payload.password, rounds=settings.bcrypt_rounds)
    if not await repo.consume_reset_token(record, password_hash):
        raise ValidationError(INVALID_RESET_TOKEN_MESSAGE)
    await db.commit()

    logger.info(f"Password reset completed for user {user.id}")
    return MessageResponse(message="Password reset successful")


@router.get(
    "/me",
    response_model=UserEnvelope,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def read_current_user(
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's account."""
    user = await UserRepository(db).get(current_user.user_id)
    if user is None:
        raise NotFoundError("User")
    return UserEnvelope(user=UserResponse.model_validate(user))
