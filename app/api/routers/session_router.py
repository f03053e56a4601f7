"""
Session Router.
Exposes the session controller: loading, wallet connection, sign-out and
auth provider events.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from app.api.deps.auth_guard import (
    AuthenticatedUser,
    auth_guard,
    get_current_user,
    get_optional_token,
    get_session_controller,
    get_session_registry,
    verify_webhook_secret,
)
from app.api.dto.session_dto import (
    AuthEventRequestDTO,
    SessionDataDTO,
    SessionLoadRequestDTO,
    SessionResponseDTO,
)
from app.api.dto.wallet_dto import ConnectWalletRequestDTO
from app.api.services.session_service import SessionController, SessionRegistry
from app.core.exceptions import create_http_exception
from app.core.logging import get_logger
from app.infrastructure.wallet.wallet_provider import wallet_provider_client

logger = get_logger(__name__)

router = APIRouter()


def _respond(controller: SessionController, message: str) -> SessionResponseDTO:
    return SessionResponseDTO(
        success=True,
        message=message,
        data=SessionDataDTO.from_snapshot(controller.snapshot()),
    )


@router.post("/load", response_model=SessionResponseDTO)
async def load_session(
    request: Optional[SessionLoadRequestDTO] = None,
    bearer_token: Optional[str] = Depends(get_optional_token),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponseDTO:
    """
    Resolve the session for an access token, from the body or the
    Authorization header. An invalid or missing token yields an anonymous session.
    """
    access_token = (request.access_token if request else None) or bearer_token
    controller = await registry.load(access_token)
    return _respond(controller, f"Session {controller.state.value}")


@router.get("", response_model=SessionResponseDTO)
async def get_session(
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponseDTO:
    return _respond(controller, "Session retrieved")


@router.post("/wallet/connect", response_model=SessionResponseDTO)
async def connect_wallet(
    request: ConnectWalletRequestDTO,
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponseDTO:
    """
    Connect a wallet to the session. The wallet is cached but not linked to the profile.
    """
    _, error = await controller.connect_wallet(request.model_dump(by_alias=True))
    if error:
        raise create_http_exception(error)
    return _respond(controller, "Wallet connected")


@router.post("/wallet/detect", response_model=SessionResponseDTO)
async def detect_wallet(
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponseDTO:
    """Adopt the account the wallet bridge already exposes, if any."""
    await controller.detect_wallet(wallet_provider_client)
    return _respond(controller, "Wallet detection finished")


@router.post("/wallet/disconnect", response_model=SessionResponseDTO)
async def disconnect_wallet(
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponseDTO:
    _, error = await controller.disconnect_wallet()
    if error:
        raise create_http_exception(error)
    return _respond(controller, "Wallet disconnected")


@router.post("/sign-out", response_model=SessionResponseDTO)
async def sign_out(
    current_user: AuthenticatedUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponseDTO:
    """
    Clear the session and cached wallet, then revoke the provider session.
    """
    _, error = await registry.sign_out(current_user.user_id, current_user.access_token)
    auth_guard.forget(current_user.access_token)
    if error:
        logger.warning(f"Provider sign-out failed for {current_user.user_id}: {error.message}")

    return SessionResponseDTO(
        success=error is None,
        message="Signed out" if error is None else f"Signed out locally: {error.message}",
        data=None,
    )


@router.post(
    "/events",
    response_model=SessionResponseDTO,
    dependencies=[Depends(verify_webhook_secret)],
)
async def handle_auth_event(
    request: AuthEventRequestDTO,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponseDTO:
    """
    Receive an auth provider event (SIGNED_IN, SIGNED_OUT, USER_UPDATED,
    TOKEN_REFRESHED) and apply it to the owning session.
    """
    controller = await registry.handle_event(request.event, request.session, request.user_id)
    if controller is None:
        return SessionResponseDTO(success=True, message="Event ignored", data=None)
    return _respond(controller, f"Event {request.event.value} applied")
