"""
CORS Configuration

Configures Cross-Origin Resource Sharing settings.
"""

import copy
from typing import List, Optional
from dataclasses import dataclass, field

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


@dataclass
class CORSConfig:
    """CORS configuration settings."""

    allowed_origins: List[str] = field(default_factory=list)

    # Allow credentials (cookies, authorization headers)
    allow_credentials: bool = True

    allowed_methods: List[str] = field(default_factory=lambda: [
        "GET", "POST", "PUT", "DELETE", "OPTIONS"
    ])

    allowed_headers: List[str] = field(default_factory=lambda: [
        "Accept",
        "Accept-Language",
        "Content-Type",
        "Content-Language",
        "Authorization",
        "X-Request-ID",
    ])

    # Headers to expose to the browser
    expose_headers: List[str] = field(default_factory=lambda: [
        "X-Request-ID",
        "X-Rate-Limit-Remaining",
        "X-Rate-Limit-Reset",
        "Retry-After",
    ])

    # Max age for preflight cache (in seconds)
    max_age: int = 3600


# Environment-specific configurations
CORS_CONFIGS = {
    "development": CORSConfig(
        allowed_origins=[
            "http://localhost:3000",
            "http://localhost:5173",      # Vite dev server
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
    ),
    "test": CORSConfig(
        allowed_origins=["http://testserver"],
    ),
    "production": CORSConfig(
        allowed_origins=[],
        max_age=7200,
    ),
}


def get_cors_config(
    environment: str = "development",
    extra_origins: Optional[List[str]] = None,
) -> CORSConfig:
    """
    Get CORS configuration for the environment.

    Args:
        environment: Deployment environment name.
        extra_origins: Origins to allow on top of the preset (CORS_ORIGINS).
    """
    config = copy.deepcopy(CORS_CONFIGS.get(environment, CORS_CONFIGS["development"]))

    for origin in extra_origins or []:
        origin = origin.strip().rstrip("/")
        if origin and origin not in config.allowed_origins:
            config.allowed_origins.append(origin)

    return config


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    """
    Configure CORS middleware for the FastAPI application.

    Args:
        app: FastAPI application instance.
        config: CORS configuration. Defaults to the development preset.
    """
    if config is None:
        config = get_cors_config()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=config.allow_credentials,
        allow_methods=config.allowed_methods,
        allow_headers=config.allowed_headers,
        expose_headers=config.expose_headers,
        max_age=config.max_age,
    )
