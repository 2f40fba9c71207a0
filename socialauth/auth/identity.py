import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from socialauth.auth.providers.base import NormalizedProfile
from socialauth.auth.store import IdentityStore, InternalUser
from socialauth.exceptions import StorageError

logger = logging.getLogger(__name__)


def synthetic_email(profile: NormalizedProfile) -> str:
    """Placeholder address for providers that share no email."""
    return f"{profile.platform_user_id}@{profile.platform.value}"


class IdentityResolver:
    """
    Map a normalized platform profile to the internal user and tenant.

    Email is the only cross-platform correlation key. A profile whose email
    belongs to an existing user resolves to that user unchanged, so the same
    person linking a second platform shares one tenant. Anything else mints
    a new user whose id is the platform user id and whose tenant id is a
    fresh UUID. Profiles without an email are never merged into another
    person's tenant.
    """

    def __init__(
        self,
        store: IdentityStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.clock = clock

    def resolve(self, profile: NormalizedProfile) -> tuple[InternalUser, bool]:
        """
        Returns:
            (user, is_new_user)

        Raises:
            StorageError: Store unreachable, or the id is held by a user the
                profile cannot be matched to.
        """
        email = profile.email.strip().lower() if profile.email else None

        if email:
            existing = self.store.get_by_email(email)
            if existing:
                logger.info(
                    "%s account %s resolved to existing tenant %s by email",
                    profile.platform.label, profile.platform_user_id, existing.tenant_id
                )
                return existing, False

        candidate = InternalUser(
            id=profile.platform_user_id,
            tenant_id=str(uuid.uuid4()),
            email=email or synthetic_email(profile),
            display_name=profile.display_name,
            registered_at=self.clock(),
            platform=profile.platform,
        )
        if self.store.insert_if_absent(candidate):
            logger.info(
                "Registered %s user %s with new tenant %s",
                profile.platform.label, candidate.id, candidate.tenant_id
            )
            return candidate, True

        # Lost a race or a returning identity: read back whoever holds the keys
        existing = self.store.get_by_email(candidate.email)
        if existing is not None:
            return existing, False

        # Same account on the same platform whose email changed since registering
        holder = self.store.get_by_id(candidate.id)
        if holder is not None and holder.platform is profile.platform:
            return holder, False

        if holder is not None:
            logger.warning(
                "%s account %s collides with user %s registered on another platform",
                profile.platform.label, profile.platform_user_id, holder.id
            )
        raise StorageError(
            f"user {candidate.id} could neither be created nor matched",
            platform=profile.platform.value,
        )
