"""
TB12 Membership Backend - FastAPI Application
Main entry point for the membership service.
Handles member profiles, wallet linking, membership NFT status and auth sessions.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from app.api.services.session_service import SessionRegistry
from app.core.config import is_development, is_production, settings
from app.core.logging import get_logger, log_request, setup_logging
from app.domain.repositories.nft_repository import nft_repository
from app.domain.repositories.profile_repository import profile_repository
from app.infrastructure.cache import redis_client

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    setup_logging()
    app.state.session_registry = SessionRegistry()
    logger.info(f"{settings.APP_NAME} starting in {settings.ENVIRONMENT} mode")
    yield
    # Shutdown
    await profile_repository.close()
    await nft_repository.disconnect()
    await redis_client.disconnect()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Membership API - Profiles, wallet linking, membership NFT status and auth sessions",
        version="1.0.0",
        docs_url="/docs" if not is_production() else None,
        redoc_url="/redoc" if not is_production() else None,
        openapi_url="/openapi.json" if not is_production() else None,
        lifespan=lifespan,
    )

    cors_origins = settings.get_effective_cors_origins()
    logger.info(f"CORS configured with origins: {cors_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Trusted host middleware only validates the Host header
    if is_production():
        logger.info(
            f"TrustedHost middleware enabled with hosts: {settings.ALLOWED_HOSTS}"
        )
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.ALLOWED_HOSTS,
        )
    else:
        logger.info("TrustedHost middleware disabled (development mode)")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        log_request(
            request.method,
            request.url.path,
            response.status_code,
            round(time.perf_counter() - started, 4),
        )
        return response

    from app.api.routers import (
        nft_router,
        profile_router,
        session_router,
        wallet_router,
    )

    app.include_router(
        profile_router.router, prefix="/api/v1/profile", tags=["Profile"]
    )
    app.include_router(
        wallet_router.router, prefix="/api/v1/wallet", tags=["Wallet Linking"]
    )
    app.include_router(
        nft_router.router, prefix="/api/v1/nft", tags=["Membership NFT"]
    )
    app.include_router(
        session_router.router, prefix="/api/v1/session", tags=["Session"]
    )

    @app.get("/")
    async def root():
        """Root endpoint for health check."""
        return {
            "message": settings.APP_NAME,
            "version": "1.0.0",
            "status": "healthy",
            "features": [
                "Member Profiles",
                "Wallet Linking",
                "Membership NFT Status",
                "Session Management",
            ],
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "features_enabled": {
                "auth_provider": bool(settings.AUTH_PROVIDER_URL),
                "wallet_challenge": settings.REQUIRE_WALLET_CHALLENGE,
                "auth_webhook_secret": bool(settings.AUTH_WEBHOOK_SECRET),
            },
        }

    return app


# Create the FastAPI app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=is_development(),
        log_level="info",
    )
