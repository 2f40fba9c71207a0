import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Type

import httpx

from socialauth.exceptions import LinkingError
from socialauth.models.social_account import Platform

logger = logging.getLogger(__name__)


@dataclass
class RawToken:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds, as reported by the provider
    scope: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)  # e.g. TikTok open_id
    obtained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class NormalizedProfile:
    platform: Platform
    platform_user_id: str
    email: Optional[str]
    display_name: Optional[str]
    profile_picture_url: Optional[str]
    access_token: str
    refresh_token: Optional[str]
    token_expires_at: Optional[datetime]


class ProviderAdapter(ABC):
    """One platform's OAuth dialect behind a common interface."""

    platform: Platform
    scope: str
    # Used when the token response carries no expires_in
    default_token_lifetime: timedelta

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        # Tests swap in httpx.MockTransport here
        self.transport = transport

    @abstractmethod
    def build_authorization_url(self, state: str) -> str:
        """Return the provider authorization URL for this state."""
        ...

    @abstractmethod
    async def exchange_code_for_token(self, code: str) -> RawToken:
        """Exchange an authorization code for tokens. Raises ProviderExchangeError."""
        ...

    @abstractmethod
    async def fetch_profile(self, token: RawToken) -> NormalizedProfile:
        """Fetch and normalize the user's profile. Raises ProviderProfileError."""
        ...

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def token_expires_at(self, token: RawToken) -> datetime:
        if token.expires_in:
            return token.obtained_at + timedelta(seconds=token.expires_in)
        return token.obtained_at + self.default_token_lifetime

    def read_json(
        self,
        response: httpx.Response,
        error_cls: Type[LinkingError],
        action: str,
    ) -> dict:
        """
        Return the JSON object of a successful provider response.

        Statuses other than 200 and non-object bodies raise error_cls. The body is
        logged at debug level only and never copied into the exception.
        """
        if response.status_code != 200:
            logger.warning(
                "%s %s failed with status %d",
                self.platform.label, action, response.status_code
            )
            logger.debug("%s %s response body: %.500s", self.platform.label, action, response.text)
            raise error_cls(
                f"{action} failed with status {response.status_code}",
                platform=self.platform.value,
            )
        try:
            data = response.json()
        except ValueError:
            raise error_cls(f"{action} returned a malformed body", platform=self.platform.value)
        if not isinstance(data, dict):
            raise error_cls(f"{action} returned a malformed body", platform=self.platform.value)
        return data

    def transport_error(
        self,
        exc: httpx.HTTPError,
        error_cls: Type[LinkingError],
        action: str,
    ) -> LinkingError:
        """Map a transport failure (including timeouts) to the stage's error kind."""
        if isinstance(exc, httpx.TimeoutException):
            logger.warning("%s %s timed out after %.1fs", self.platform.label, action, self.timeout)
            return error_cls(f"{action} timed out", platform=self.platform.value)
        logger.warning("%s %s request failed: %s", self.platform.label, action, type(exc).__name__)
        return error_cls(f"{action} request failed", platform=self.platform.value)


def optional_str(value: Any) -> Optional[str]:
    """Provider fields that may be absent, null or blank."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None
