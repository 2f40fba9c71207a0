import logging

from socialauth.auth.providers.base import NormalizedProfile
from socialauth.auth.store import CredentialStore, InternalUser, SocialCredential
from socialauth.exceptions import StorageError

logger = logging.getLogger(__name__)


class AccountLinker:
    """Attach a platform credential to its resolved internal user."""

    def __init__(self, store: CredentialStore):
        self.store = store

    async def link(self, user: InternalUser, profile: NormalizedProfile) -> SocialCredential:
        credential = SocialCredential(
            platform_user_id=profile.platform_user_id,
            platform=profile.platform,
            user_id=user.id,
            tenant_id=user.tenant_id,
            access_token=profile.access_token,
            refresh_token=profile.refresh_token,
            expires_at=profile.token_expires_at,
            username=profile.display_name,
            profile_picture_url=profile.profile_picture_url,
        )
        result = await self.store.upsert(credential)
        if not result.ok:
            raise StorageError(
                f"account store answered '{result.status.value}' for {profile.platform_user_id}",
                platform=profile.platform.value,
            )

        logger.info(
            "Linked %s account %s to user %s (tenant %s)",
            profile.platform.label, profile.platform_user_id, user.id, user.tenant_id
        )
        return result.credential or credential
