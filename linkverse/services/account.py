"""Account operations: sign-in/out, profile and usage stats."""

from datetime import datetime
from typing import Optional

from linkverse.core.cache import SharedCache
from linkverse.core.errors import AuthRequired, ValidationError
from linkverse.core.logging import get_logger
from linkverse.models.entities import AuthUser, EntityKind, ProfileUpdate, UserProfile
from linkverse.services.gateway import RemoteDataGateway
from linkverse.services.search import compute_stats
from linkverse.services.session import AuthSession

logger = get_logger(__name__)


class AccountService:
    """Session lifecycle and the signed-in user's profile."""

    def __init__(self, session: AuthSession, gateway: RemoteDataGateway, cache: SharedCache):
        self.session = session
        self.gateway = gateway
        self.cache = cache

    async def sign_in(self, email: str, password: str) -> AuthUser:
        if not email or not password:
            raise ValidationError("email", "email and password are required")
        user = await self.session.sign_in(email, password)
        self.cache.invalidate()
        return user

    async def sign_up(self, email: str, password: str, full_name: str) -> Optional[AuthUser]:
        if not email or not password:
            raise ValidationError("email", "email and password are required")
        if len(password) < 6:
            raise ValidationError("password", "must be at least 6 characters")
        user = await self.session.sign_up(email, password, full_name)
        self.cache.invalidate()
        return user

    async def sign_out(self) -> None:
        await self.session.sign_out()
        self.cache.invalidate()

    async def get_profile(self) -> UserProfile:
        """Profile through the cache; raises AuthRequired when nobody is signed in."""
        self.session.require_user()
        entry = await self.cache.get_or_refresh(EntityKind.PROFILE)
        if entry.value is None:
            # never fetched successfully; ask directly so the real error surfaces
            return await self.gateway.current_profile()
        return entry.value

    async def update_profile(self, data: ProfileUpdate) -> UserProfile:
        user = self.session.require_user()
        attrs = data.model_dump(mode="json", exclude_unset=True)
        if not attrs:
            return await self.get_profile()
        profile = await self.gateway.update(EntityKind.PROFILE, user.id, attrs)
        self.cache.invalidate()
        logger.info("Profile updated", fields=sorted(attrs))
        return profile

    async def stats(self, now: Optional[datetime] = None) -> dict:
        if not self.session.is_authenticated:
            raise AuthRequired()
        links = await self.cache.get_or_refresh(EntityKind.LINKS)
        collections = await self.cache.get_or_refresh(EntityKind.COLLECTIONS)
        stats = compute_stats(links.value, collections.value, now)
        stats["dataLoaded"] = links.populated and collections.populated
        return stats
