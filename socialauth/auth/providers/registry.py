"""
Provider registry for platform lookup by name.

Adapter classes register under their platform when this module loads;
build() turns a platform name from the URL into a configured adapter
instance. A platform whose client id is empty counts as disabled and is
reported exactly like an unknown one.
"""

from typing import Dict, Optional, Type

import httpx

from socialauth.auth.providers.base import ProviderAdapter
from socialauth.auth.providers.meta import MetaOAuth
from socialauth.auth.providers.snapchat import SnapchatOAuth
from socialauth.auth.providers.tiktok import TikTokOAuth
from socialauth.config import Settings
from socialauth.exceptions import ProviderNotFoundError
from socialauth.models.social_account import Platform


class ProviderRegistry:
    """
    Central registry of provider adapter classes.

    Class-level state: adapters register at import time, lookups are
    read-only afterwards.
    """

    _providers: Dict[Platform, Type[ProviderAdapter]] = {}

    @classmethod
    def register(cls, platform: Platform, adapter_class: Type[ProviderAdapter]) -> None:
        """
        Register an adapter class for a platform.

        Registering the same class twice is a no-op; a different class for
        an already registered platform raises ValueError.
        """
        existing = cls._providers.get(platform)
        if existing is not None and existing is not adapter_class:
            raise ValueError(
                f"Platform '{platform.value}' is already registered with {existing.__name__}. "
                f"Cannot re-register with {adapter_class.__name__}."
            )
        cls._providers[platform] = adapter_class

    @classmethod
    def list_platforms(cls) -> list[str]:
        return sorted(p.value for p in cls._providers)

    @classmethod
    def build(
        cls,
        name: str,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> ProviderAdapter:
        """
        Return a configured adapter for the named platform.

        Raises:
            ProviderNotFoundError: Unknown platform, or no client id configured.
        """
        try:
            platform = Platform(name.lower())
        except ValueError:
            raise ProviderNotFoundError(name, cls.list_platforms())
        if platform not in cls._providers:
            raise ProviderNotFoundError(name, cls.list_platforms())

        client_id, client_secret, redirect_uri = _credentials_for(platform, settings)
        if not client_id:
            raise ProviderNotFoundError(name, cls.list_platforms())

        return cls._providers[platform](
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            transport=transport,
        )


def _credentials_for(platform: Platform, settings: Settings) -> tuple[str, str, str]:
    if platform is Platform.META:
        return (
            settings.META_CLIENT_ID,
            settings.META_CLIENT_SECRET.get_secret_value(),
            settings.META_REDIRECT_URI,
        )
    if platform is Platform.TIKTOK:
        return (
            settings.TIKTOK_CLIENT_KEY,
            settings.TIKTOK_CLIENT_SECRET.get_secret_value(),
            settings.TIKTOK_REDIRECT_URI,
        )
    return (
        settings.SNAPCHAT_CLIENT_ID,
        settings.SNAPCHAT_CLIENT_SECRET.get_secret_value(),
        settings.SNAPCHAT_REDIRECT_URI,
    )


ProviderRegistry.register(Platform.META, MetaOAuth)
ProviderRegistry.register(Platform.TIKTOK, TikTokOAuth)
ProviderRegistry.register(Platform.SNAPCHAT, SnapchatOAuth)
