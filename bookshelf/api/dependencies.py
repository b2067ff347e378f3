"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Database sessions
- The mailer
- Authentication and authorization
"""

import os
from typing import AsyncGenerator, Optional
from functools import lru_cache
from dataclasses import dataclass, field

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..mailer import Mailer
from ..security import SessionClaims, TokenError, decode_access_token
from ..storage.database import Database
from ..storage.user_repository import UserRepository
from .middleware.error_handler import AuthenticationError, ForbiddenError


# =============================================================================
# Configuration
# =============================================================================

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./bookshelf.db"
    database_echo: bool = False
    database_pool_timeout: float = 30.0

    # Tokens
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 7 * 24 * 60
    reset_token_expires_minutes: int = 60
    bcrypt_rounds: int = 12

    # Web client
    frontend_url: str = "http://localhost:5173"
    cors_origins: list[str] = field(default_factory=list)

    # Mail
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    email_from: str = "no-reply@bookshelf.app"
    email_from_name: str = "Bookshelf"

    # Rate limiting
    rate_limit_enabled: bool = True
    auth_rate_limit: int = 20
    auth_rate_limit_window_minutes: int = 15
    rate_limit_requests_per_minute: int = 120
    trust_proxy_headers: bool = False

    # First-run demo account
    seed_demo_user: bool = True

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=_env_bool("DATABASE_ECHO", "false"),
            database_pool_timeout=float(os.getenv("DATABASE_POOL_TIMEOUT", cls.database_pool_timeout)),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            jwt_expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", cls.jwt_expires_minutes)),
            reset_token_expires_minutes=int(
                os.getenv("RESET_TOKEN_EXPIRES_MINUTES", cls.reset_token_expires_minutes)
            ),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", cls.bcrypt_rounds)),
            frontend_url=os.getenv("FRONTEND_URL", cls.frontend_url).rstrip("/"),
            cors_origins=_env_list("CORS_ORIGINS"),
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT", cls.smtp_port)),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_pass=os.getenv("SMTP_PASS") or None,
            email_from=os.getenv("EMAIL_FROM", cls.email_from),
            email_from_name=os.getenv("EMAIL_FROM_NAME", cls.email_from_name),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "true"),
            auth_rate_limit=int(os.getenv("AUTH_RATE_LIMIT", cls.auth_rate_limit)),
            rate_limit_requests_per_minute=int(os.getenv("RATE_LIMIT_RPM", cls.rate_limit_requests_per_minute)),
            trust_proxy_headers=_env_bool("TRUST_PROXY_HEADERS", "false"),
            seed_demo_user=_env_bool("SEED_DEMO_USER", "true"),
            environment=os.getenv("BOOKSHELF_ENV", cls.environment),
            debug=_env_bool("DEBUG", "true"),
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with."""
    return request.app.state.settings


# =============================================================================
# Database
# =============================================================================

def get_database(request: Request) -> Database:
    """Database handle owned by the application."""
    return request.app.state.database


async def get_db(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Routes commit their own writes; anything left uncommitted when the
    request fails is rolled back.

    Yields:
        AsyncSession for database operations.
    """
    async with database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# =============================================================================
# Services
# =============================================================================

def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


# =============================================================================
# Authentication Dependencies
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
) -> SessionClaims:
    """
    Identity from the bearer token.

    Raises:
        AuthenticationError: Missing, malformed, expired or non-session token.
    """
    if not token:
        raise AuthenticationError()

    try:
        return decode_access_token(token, settings.jwt_secret, settings.jwt_algorithm)
    except TokenError:
        raise AuthenticationError()


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
) -> Optional[SessionClaims]:
    """Identity from the bearer token, or None instead of failing."""
    if not token:
        return None

    try:
        return decode_access_token(token, settings.jwt_secret, settings.jwt_algorithm)
    except TokenError:
        return None


async def require_admin(
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SessionClaims:
    """
    Admin gate.

    The role inside the token is only a hint: it was true when the token
    was signed. The role is re-read from the users table on every call so
    a promotion works without logging in again and a demotion takes access
    away at once.

    Raises:
        AuthenticationError: The account no longer exists.
        ForbiddenError: The account is not an admin.
    """
    role = await UserRepository(db).get_role(current_user.user_id)

    if role is None:
        raise AuthenticationError("User not found")
    if role != "admin":
        raise ForbiddenError("Admin access required")

    current_user.role = role
    return current_user



async def get_active_user(
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SessionClaims:
    """
    Identity from the bearer token, for routes that create rows owned by it.

    A session token outlives an account deleted by an admin; inserting for
    that id would break the foreign key.

    Raises:
        AuthenticationError: The account no longer exists.
    """
    if await UserRepository(db).get_role(current_user.user_id) is None:
        raise AuthenticationError("User not found")
    return current_user
