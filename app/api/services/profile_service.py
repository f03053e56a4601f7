"""
Profile Service Layer.
Ensures every auth user has exactly one profile and applies user edits to it.
"""

import time
from typing import Any, Dict, Optional

from app.core.exceptions import InvalidInputError, Result
from app.core.logging import get_logger, log_profile_operation
from app.domain.models.profile import (
    NotificationPreferences,
    ProfileModel,
    ProfileSeedModel,
    ProfileUpdateModel,
)
from app.domain.models.user import AuthUser
from app.domain.repositories.profile_repository import (
    ProfileRepository,
    profile_repository,
)

logger = get_logger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def fallback_username(now_ms: Optional[int] = None) -> str:
    """``user_<millisecond timestamp in base36>``"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"user_{to_base36(now_ms)}"


def default_username(email: Optional[str], metadata: Optional[Dict[str, Any]] = None) -> str:
    """Metadata username, then the email local-part, then a generated fallback."""
    metadata = metadata or {}
    if metadata.get("username"):
        return metadata["username"]
    if email and "@" in email:
        local_part = email.split("@", 1)[0]
        if local_part:
            return local_part
    return fallback_username()


def build_profile_defaults(user: AuthUser) -> ProfileSeedModel:
    """
    Seed values for a lazily created profile. The wallet always starts empty;
    a wallet reaches the profile only through a signed link.
    """
    metadata = user.user_metadata or {}
    return ProfileSeedModel(
        username=default_username(user.email, metadata),
        email=user.email,
        avatar_url=metadata.get("avatar_url") or "",
        bio="",
        has_nft=False,
        notifications=NotificationPreferences(email=True, marketing=False),
    )


class ProfileService:
    """Service class for the profile ensurer and safe profile updates."""

    def __init__(self, repository: Optional[ProfileRepository] = None):
        self.repository = repository or profile_repository

    async def ensure(self, user_id: str, defaults: ProfileSeedModel) -> Result[ProfileModel]:
        """
        Return the user's profile, creating it from ``defaults`` if absent.
        Never modifies an existing profile.
        """
        if not user_id:
            return None, InvalidInputError("User ID is required")

        profile, error = await self.repository.get(user_id)
        if error:
            return None, error
        if profile:
            return profile, None

        logger.info(f"No profile for {user_id}, creating one")
        profile, error = await self.repository.create(user_id, defaults)
        if error:
            return None, error

        log_profile_operation("ensure", user_id, username=profile.username, created=True)
        return profile, None

    async def ensure_for_user(self, user: AuthUser) -> Result[ProfileModel]:
        """Ensure a profile using defaults derived from the auth user."""
        return await self.ensure(user.id, build_profile_defaults(user))

    async def update_profile(
        self, user: AuthUser, changes: ProfileUpdateModel
    ) -> Result[ProfileModel]:
        """
        Apply user-editable fields, creating the profile first when it is missing.
        """
        _, error = await self.ensure_for_user(user)
        if error:
            return None, error

        fields = changes.changes()
        if not fields:
            return await self.repository.get(user.id)

        return await self.repository.update(user.id, fields)


# Global service instance
profile_service = ProfileService()
