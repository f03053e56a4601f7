"""
Logging configuration for the TB12 Membership Backend.
Provides structured logging for profile, wallet and NFT operations.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.stdlib import LoggerFactory

from app.core.config import settings


def setup_logging() -> None:
    """
    Configure structured logging for the application.
    Sets up different log formats for development and production environments.
    """

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _get_processor(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _get_processor():
    """
    Get the appropriate processor based on environment.

    Returns:
        Processor function for structlog
    """
    if settings.ENVIRONMENT == "production":
        return structlog.processors.JSONRenderer()
    if settings.LOG_FORMAT == "json" and not settings.DEBUG:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name)


class LoggerMixin:
    """Mixin class to add logging capabilities to any class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        """Get logger instance for this class."""
        return get_logger(self.__class__.__module__ + "." + self.__class__.__name__)


# Specialized logging functions for membership operations

def log_profile_operation(
    operation: str,
    user_id: str,
    username: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log profile store operations.

    Args:
        operation: Operation type (get, create, update, ensure)
        user_id: Auth provider user ID
        username: Profile username
        **kwargs: Additional context
    """
    logger = get_logger("profile.operation")
    logger.info(
        "Profile operation",
        operation=operation,
        user_id=user_id,
        username=username,
        **kwargs
    )


def log_wallet_operation(
    operation: str,
    wallet_address: Optional[str],
    chain_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log wallet-related operations.

    Args:
        operation: Operation type (connect, disconnect, link, unlink, challenge)
        wallet_address: Wallet address
        chain_id: Chain identifier reported by the wallet
        user_id: User ID
        **kwargs: Additional context
    """
    logger = get_logger("wallet.operation")
    logger.info(
        "Wallet operation",
        operation=operation,
        wallet_address=wallet_address,
        chain_id=chain_id,
        user_id=user_id,
        **kwargs
    )


def log_nft_check(
    user_id: str,
    wallet_address: str,
    has_nft: bool,
    nft_count: int = None,
    **kwargs
) -> None:
    """
    Log NFT ownership checks.

    Args:
        user_id: User ID
        wallet_address: Wallet address checked
        has_nft: Result written onto the profile
        nft_count: Number of matching NFT records
        **kwargs: Additional context
    """
    logger = get_logger("nft.check")
    logger.info(
        "NFT status check",
        user_id=user_id,
        wallet_address=wallet_address,
        has_nft=has_nft,
        nft_count=nft_count,
        **kwargs
    )


def log_auth_event(
    event: str,
    user_id: Optional[str] = None,
    state: Optional[str] = None,
    **kwargs
) -> None:
    """
    Log auth provider events and session state transitions.

    Args:
        event: Event name (SIGNED_IN, SIGNED_OUT, USER_UPDATED, TOKEN_REFRESHED, LOAD)
        user_id: User ID
        state: Session state after handling the event
        **kwargs: Additional context
    """
    logger = get_logger("auth.event")
    logger.info(
        "Auth event",
        auth_event=event,
        user_id=user_id,
        state=state,
        **kwargs
    )


def log_error(error: Exception, context: Dict[str, Any] = None) -> None:
    """
    Log an error with context.

    Args:
        error: Exception instance
        context: Additional context information
    """
    logger = get_logger("error")
    logger.error(
        "An error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        exc_info=True
    )


def log_request(method: str, url: str, status_code: int, duration: float, **kwargs) -> None:
    """
    Log HTTP request details.

    Args:
        method: HTTP method
        url: Request URL
        status_code: Response status code
        duration: Request duration in seconds
        **kwargs: Additional context to log
    """
    logger = get_logger("http.request")
    logger.info(
        "HTTP request completed",
        method=method,
        url=url,
        status_code=status_code,
        duration=duration,
        **kwargs
    )
