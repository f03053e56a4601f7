"""
Session Service Layer.

``SessionController`` holds one client's user, profile and wallet and is the
only writer of that state. It reacts to session loads, auth provider events
and wallet actions; readers subscribe for snapshots.

The profile record is authoritative for the wallet: the session wallet and
the wallet cache are derived from it whenever the profile carries an address.
A wallet that is connected but not yet linked lives only in the session and
the cache.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, ValidationError

from app.api.services.profile_service import ProfileService, profile_service
from app.core.config import settings
from app.core.exceptions import (
    InvalidInputError,
    MembershipError,
    NotAuthenticatedError,
    Result,
    StoreError,
)
from app.core.logging import (
    LoggerMixin,
    get_logger,
    log_auth_event,
    log_error,
    log_wallet_operation,
)
from app.domain.models.profile import ProfileModel, ProfileUpdateModel
from app.domain.models.user import AuthEvent, AuthSession, AuthUser, WalletModel
from app.infrastructure.auth.auth_provider_client import (
    HostedAuthClient,
    hosted_auth_client,
)
from app.infrastructure.blockchain.signature_utils import addresses_match
from app.infrastructure.cache.wallet_cache import WalletCache
from app.infrastructure.wallet.wallet_provider import WalletProviderClient

logger = get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a client session."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class SessionSnapshot(BaseModel):
    """Read-only view of a session handed to subscribers."""

    state: SessionState
    user: Optional[AuthUser] = None
    profile: Optional[ProfileModel] = None
    wallet: Optional[WalletModel] = None
    error: Optional[str] = None


SessionListener = Callable[[SessionSnapshot], None]


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp from metadata, falling back to now."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = date_parser.isoparse(value)
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            logger.warning(f"Unparseable wallet timestamp: {value}")
    return datetime.now(timezone.utc)


def wallet_from_metadata(user: AuthUser) -> Optional[WalletModel]:
    address = user.metadata_wallet_address
    if not address:
        return None
    return WalletModel(
        address=address,
        wallet_name=settings.DEFAULT_WALLET_NAME,
        connected_at=parse_timestamp(user.user_metadata.get("wallet_last_signed")),
    )


def reconcile_wallet(
    profile: Optional[ProfileModel], *candidates: Optional[WalletModel]
) -> Optional[WalletModel]:
    """
    Pick the session wallet.

    A profile wallet address wins; a candidate with the same address is reused
    so its name, chain and connection time survive. Without a profile wallet
    the first available candidate is used.
    """
    available = [candidate for candidate in candidates if candidate]

    if profile and profile.wallet_address:
        for candidate in available:
            if addresses_match(candidate.address, profile.wallet_address):
                return candidate
        if available:
            logger.warning(
                "Session wallet differs from linked profile wallet, using profile",
                user_id=profile.id,
                profile_wallet=profile.wallet_address,
                session_wallet=available[0].address,
            )
        return WalletModel(
            address=profile.wallet_address,
            wallet_name=settings.DEFAULT_WALLET_NAME,
            connected_at=profile.updated_at,
        )

    return available[0] if available else None


class SessionController:
    """Owns the auth state of one client session."""

    def __init__(
        self,
        auth_client: Optional[HostedAuthClient] = None,
        profiles: Optional[ProfileService] = None,
        wallet_cache: Optional[WalletCache] = None,
    ):
        self.auth_client = auth_client or hosted_auth_client
        self.profiles = profiles or profile_service
        self.wallet_cache = wallet_cache or WalletCache()

        self.state = SessionState.UNINITIALIZED
        self.user: Optional[AuthUser] = None
        self.profile: Optional[ProfileModel] = None
        self.wallet: Optional[WalletModel] = None
        self.access_token: Optional[str] = None
        self.error: Optional[str] = None

        self._lock = asyncio.Lock()
        self._listeners: List[SessionListener] = []

    # Readers

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state,
            user=self.user,
            profile=self.profile,
            wallet=self.wallet,
            error=self.error,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener called with a snapshot after every change.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                log_error(e, {"user_id": snapshot.user.id if snapshot.user else None})

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED and self.user is not None

    # Lifecycle

    async def load(self, access_token: Optional[str]) -> SessionSnapshot:
        """
        Resolve the current session on application start.
        Ends in AUTHENTICATED with user, profile and restored wallet, or ANONYMOUS.
        """
        async with self._lock:
            self.state = SessionState.LOADING
            self.error = None
            self._notify()

            session = None
            if access_token:
                session, error = await self.auth_client.get_session(access_token)
                if error:
                    self.error = error.message
                    logger.error(f"Auth session check error: {error.message}")

            if session is None:
                self._reset(SessionState.ANONYMOUS)
                log_auth_event("LOAD", state=self.state.value)
                self._notify()
                return self.snapshot()

            await self._adopt_session(session, restore_from_cache=True)
            log_auth_event("LOAD", user_id=session.user.id, state=self.state.value)
            self._notify()
            return self.snapshot()

    async def handle_auth_event(
        self, event: AuthEvent, session: Optional[AuthSession]
    ) -> SessionSnapshot:
        """
        Apply an auth provider event.

        SIGNED_IN / USER_UPDATED / INITIAL_SESSION ensure the profile and adopt a
        metadata wallet; TOKEN_REFRESHED passes through LOADING; SIGNED_OUT, or
        any event without a session, clears the session and its wallet cache.
        """
        async with self._lock:
            if event == AuthEvent.SIGNED_OUT or session is None:
                await self._clear()
                log_auth_event(event.value, state=self.state.value)
                self._notify()
                return self.snapshot()

            if event == AuthEvent.TOKEN_REFRESHED:
                self.state = SessionState.LOADING
                self._notify()

            await self._adopt_session(session, restore_from_cache=False)
            log_auth_event(event.value, user_id=session.user.id, state=self.state.value)
            self._notify()
            return self.snapshot()

    async def sign_out(self) -> Result[bool]:
        """
        Clear the session and the wallet cache, then revoke the provider session.
        Local state is cleared even when the provider call fails.
        """
        async with self._lock:
            access_token = self.access_token
            user_id = self.user.id if self.user else None
            await self._clear()
            log_auth_event("SIGN_OUT", user_id=user_id, state=self.state.value)
            self._notify()

        if not access_token:
            return True, None
        return await self.auth_client.sign_out(access_token)

    # Wallet

    async def connect_wallet(self, wallet_data: Dict[str, Any]) -> Result[WalletModel]:
        """
        Set the session wallet and persist it to the wallet cache.
        Does not link the wallet to the profile.
        """
        if not wallet_data or not wallet_data.get("address"):
            return None, InvalidInputError("Invalid wallet data provided to connect_wallet")

        async with self._lock:
            if not self.is_authenticated:
                return None, NotAuthenticatedError()

            try:
                wallet = WalletModel(
                    address=wallet_data["address"],
                    wallet_name=wallet_data.get("walletName") or wallet_data.get("wallet_name") or settings.DEFAULT_WALLET_NAME,
                    chain_id=wallet_data.get("chainId") or wallet_data.get("chain_id"),
                    connected_at=parse_timestamp(wallet_data.get("connectedAt") or wallet_data.get("connected_at")),
                )
            except ValidationError as e:
                return None, InvalidInputError("Invalid wallet data", {"errors": e.errors()})

            self.wallet = wallet
            error = await self._persist_wallet()
            log_wallet_operation("connect", wallet.address, chain_id=wallet.chain_id, user_id=self.user.id)
            self._notify()
            if error:
                return wallet, error
            return wallet, None

    async def disconnect_wallet(self) -> Result[bool]:
        """Forget the session wallet and its cache entry."""
        async with self._lock:
            if not self.user:
                self.wallet = None
                return True, None

            address = self.wallet.address if self.wallet else None
            self.wallet = None
            error = await self._persist_wallet()
            log_wallet_operation("disconnect", address, user_id=self.user.id)
            self._notify()
            return error is None, error

    async def detect_wallet(self, provider: WalletProviderClient) -> Optional[WalletModel]:
        """
        Adopt the account a wallet already exposes, if any. The provider check
        is bounded by ``WALLET_ACCOUNT_CHECK_TIMEOUT_SECONDS``.
        """
        if not self.is_authenticated:
            return None

        account = await provider.get_current_account()
        if not account:
            return self.wallet
        if self.wallet and addresses_match(self.wallet.address, account):
            return self.wallet

        wallet, error = await self.connect_wallet({"address": account})
        if error and wallet is None:
            logger.warning(f"Could not adopt detected wallet: {error.message}")
        return wallet

    async def apply_linked_profile(self, profile: ProfileModel) -> SessionSnapshot:
        """
        Take the profile returned by a link or unlink and re-derive the session
        wallet from it. An unlinked profile drops the session wallet.
        """
        async with self._lock:
            self.profile = profile
            if profile.wallet_address:
                self.wallet = reconcile_wallet(profile, self.wallet)
            else:
                self.wallet = None
            await self._persist_wallet()
            self._notify()
            return self.snapshot()

    # Profile

    async def update_profile(self, changes: ProfileUpdateModel) -> Result[ProfileModel]:
        async with self._lock:
            if not self.is_authenticated:
                return None, NotAuthenticatedError()

            profile, error = await self.profiles.update_profile(self.user, changes)
            if error:
                return None, error

            self.profile = profile
            self._notify()
            return profile, None

    # Internals

    async def _adopt_session(self, session: AuthSession, restore_from_cache: bool) -> None:
        self.user = session.user
        if session.access_token:
            self.access_token = session.access_token

        profile, error = await self.profiles.ensure_for_user(session.user)
        if error:
            logger.error(f"Error checking/creating profile: {error.message}")
            self.error = error.message
        else:
            self.profile = profile

        if restore_from_cache:
            cached = await self._load_cached_wallet()
            self.wallet = reconcile_wallet(self.profile, cached)
            if self.wallet is not None and self.wallet != cached:
                await self._persist_wallet()
        else:
            self.wallet = reconcile_wallet(
                self.profile, wallet_from_metadata(session.user), self.wallet
            )
            if self.wallet is not None:
                await self._persist_wallet()

        self.state = SessionState.AUTHENTICATED

    async def _load_cached_wallet(self) -> Optional[WalletModel]:
        try:
            return await self.wallet_cache.load(self.user.id)
        except StoreError as e:
            logger.error(f"Could not restore cached wallet: {e.message}")
            return None

    async def _persist_wallet(self) -> Optional[MembershipError]:
        """Write the session wallet to the cache, or remove the entry when there is none."""
        if not self.user:
            return None
        try:
            if self.wallet:
                await self.wallet_cache.save(self.user.id, self.wallet)
            else:
                await self.wallet_cache.clear(self.user.id)
        except StoreError as e:
            logger.error(f"Wallet cache write failed: {e.message}")
            return e
        return None

    async def _clear(self) -> None:
        if self.user:
            self.wallet = None
            await self._persist_wallet()
        self._reset(SessionState.ANONYMOUS)

    def _reset(self, state: SessionState) -> None:
        self.user = None
        self.profile = None
        self.wallet = None
        self.access_token = None
        self.state = state


class SessionRegistry(LoggerMixin):
    """Owns the live session controllers, keyed by user ID."""

    def __init__(
        self,
        controller_factory: Optional[Callable[[], SessionController]] = None,
    ):
        self._factory = controller_factory or SessionController
        self._sessions: Dict[str, SessionController] = {}

    def get(self, user_id: str) -> Optional[SessionController]:
        return self._sessions.get(user_id)

    def __len__(self) -> int:
        return len(self._sessions)

    async def load(self, access_token: Optional[str]) -> SessionController:
        """Load a session for ``access_token`` and keep it if it authenticated."""
        controller = self._factory()
        await controller.load(access_token)
        if controller.is_authenticated:
            self._sessions[controller.user.id] = controller
        return controller

    async def handle_event(
        self,
        event: AuthEvent,
        session: Optional[AuthSession],
        user_id: Optional[str] = None,
    ) -> Optional[SessionController]:
        """Route a provider event to the owning controller, creating one for sign-ins."""
        user_id = session.user.id if session else user_id
        if not user_id:
            self.logger.warning(f"Ignoring {event.value} event without a user")
            return None

        controller = self._sessions.get(user_id)
        if controller is None:
            controller = self._factory()
            if session is None:
                controller.user = AuthUser(id=user_id)

        await controller.handle_auth_event(event, session)

        if controller.is_authenticated:
            self._sessions[user_id] = controller
        else:
            self._sessions.pop(user_id, None)
        self.logger.info(f"Routed {event.value} to session", user_id=user_id, sessions=len(self._sessions))
        return controller

    async def sign_out(self, user_id: str, access_token: Optional[str] = None) -> Result[bool]:
        """Sign out ``user_id``, whether or not a live session exists on this instance."""
        controller = self._sessions.pop(user_id, None)
        if controller is None:
            controller = self._factory()
            controller.user = AuthUser(id=user_id)
        if access_token and not controller.access_token:
            controller.access_token = access_token
        return await controller.sign_out()
