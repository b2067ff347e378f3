"""
Bookshelf API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI, Depends, Request

from bookshelf import __version__
from bookshelf.mailer import Mailer, MailConfig
from bookshelf.security import SessionClaims
from bookshelf.seed import ensure_demo_admin
from bookshelf.storage.database import Database
from .schemas import HealthResponse
from .routes import auth, books, shelves, users
from .middleware import (
    setup_cors,
    setup_rate_limiting,
    setup_logging,
    setup_exception_handlers,
    PathLimit,
    RateLimitConfig,
    LoggingConfig,
    get_cors_config,
)
from .dependencies import (
    get_settings,
    get_optional_user,
    Settings,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Create tables
    - Ensure the demo admin account
    - Close database connections on shutdown
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database
    logger.info(f"Starting Bookshelf in {settings.environment} mode")

    try:
        logger.info("Initializing database...")
        await database.create_tables()

        if settings.seed_demo_user:
            await ensure_demo_admin(database, bcrypt_rounds=settings.bcrypt_rounds)

        logger.info("Bookshelf started successfully")

        yield

    finally:
        logger.info("Shutting down Bookshelf...")
        await database.dispose()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Bookshelf",
        description="Personal library tracking: books, shelves, reading progress.",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Long-lived state, handed to routes through dependencies
    app.state.settings = settings
    app.state.database = Database(
        settings.database_url,
        echo=settings.database_echo,
        pool_timeout=settings.database_pool_timeout,
    )
    app.state.mailer = Mailer(MailConfig(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_pass,
        sender=settings.email_from,
        sender_name=settings.email_from_name,
    ))

    # ==========================================================================
    # Middleware (order matters - last added = outermost)
    # ==========================================================================

    # 1. Logging
    setup_logging(
        app,
        config=LoggingConfig(
            enabled=True,
            log_request_body=settings.debug,
        ),
        structured=settings.environment != "development",
    )

    # 2. Exception handling
    setup_exception_handlers(
        app,
        expose_internal_errors=settings.environment == "development",
    )

    # 3. Rate limiting
    if settings.rate_limit_enabled:
        setup_rate_limiting(
            app,
            config=RateLimitConfig(
                requests_per_minute=settings.rate_limit_requests_per_minute,
                enabled=settings.rate_limit_enabled,
                trust_proxy_headers=settings.trust_proxy_headers,
                path_limits={
                    "/auth": PathLimit(
                        requests=settings.auth_rate_limit,
                        window_seconds=settings.auth_rate_limit_window_minutes * 60,
                    ),
                },
            ),
        )

    # 4. CORS (outermost, so preflights and error responses carry the headers)
    setup_cors(
        app,
        config=get_cors_config(
            settings.environment,
            extra_origins=[settings.frontend_url, *settings.cors_origins],
        ),
    )

    # ==========================================================================
    # Routers
    # ==========================================================================

    app.include_router(auth.router)
    app.include_router(books.router)
    app.include_router(shelves.router)
    app.include_router(users.router)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root(current_user: Optional[SessionClaims] = Depends(get_optional_user)):
        """Root endpoint with API info."""
        return {
            "name": "Bookshelf",
            "version": __version__,
            "status": "running",
            "docs": "/docs" if settings.debug else None,
            "authenticated": current_user is not None,
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request) -> HealthResponse:
        """
        Health check endpoint.

        Probes the database with a trivial query.
        """
        components = {}
        overall_healthy = True

        try:
            await request.app.state.database.ping()
            components["database"] = "healthy"
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            components["database"] = "unhealthy"
            overall_healthy = False

        components["mail"] = "configured" if settings.smtp_host else "log_only"

        return HealthResponse(
            status="healthy" if overall_healthy else "degraded",
            version=__version__,
            components=components,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

# Create application instance
app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "bookshelf.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        workers=1 if settings.debug else 4,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
