from datetime import timedelta

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from socialauth.auth.providers.base import NormalizedProfile, ProviderAdapter, RawToken, optional_str
from socialauth.exceptions import ProviderExchangeError, ProviderProfileError
from socialauth.models.social_account import Platform

SNAP_SCOPE_PREFIX = "https://auth.snapchat.com/oauth2/api/"
ME_QUERY = "{me{externalId displayName bitmoji{avatar}}}"


class SnapchatOAuth(ProviderAdapter):
    """
    Snap Kit Login.

    Standard OAuth2 (form-encoded grant, client credentials in the body),
    so authlib drives the exchange. The profile comes from the Snap Kit
    ``/v1/me`` GraphQL endpoint; ``externalId`` is the stable user id.
    """

    platform = Platform.SNAPCHAT
    scope = " ".join(SNAP_SCOPE_PREFIX + s for s in (
        "user.external_id",
        "user.display_name",
        "user.bitmoji.avatar",
    ))
    default_token_lifetime = timedelta(hours=1)

    authorize_endpoint = "https://accounts.snapchat.com/login/oauth2/authorize"
    token_endpoint = "https://accounts.snapchat.com/login/oauth2/access_token"
    profile_endpoint = "https://kit.snapchat.com/v1/me"

    def build_authorization_url(self, state: str) -> str:
        client = AsyncOAuth2Client(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            scope=self.scope
        )
        url, _ = client.create_authorization_url(self.authorize_endpoint, state=state)
        return url

    async def exchange_code_for_token(self, code: str) -> RawToken:
        try:
            async with AsyncOAuth2Client(
                client_id=self.client_id,
                client_secret=self.client_secret,
                redirect_uri=self.redirect_uri,
                token_endpoint_auth_method="client_secret_post",
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                token = await client.fetch_token(self.token_endpoint, code=code)
        except OAuthError as e:
            raise ProviderExchangeError(
                f"token exchange rejected by provider ({e.error})", platform=self.platform.value
            ) from e
        except httpx.HTTPError as e:
            raise self.transport_error(e, ProviderExchangeError, "token exchange") from e
        except ValueError as e:
            raise ProviderExchangeError("token exchange returned a malformed body", platform=self.platform.value) from e

        access_token = token.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ProviderExchangeError("access token missing from token response", platform=self.platform.value)

        expires_in = token.get("expires_in")
        return RawToken(
            access_token=access_token,
            refresh_token=optional_str(token.get("refresh_token")),
            expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else None,
            scope=optional_str(token.get("scope")),
        )

    async def fetch_profile(self, token: RawToken) -> NormalizedProfile:
        headers = {"Authorization": f"Bearer {token.access_token}"}
        try:
            async with self.http_client() as client:
                resp = await client.post(self.profile_endpoint, json={"query": ME_QUERY}, headers=headers)
        except httpx.HTTPError as e:
            raise self.transport_error(e, ProviderProfileError, "profile fetch") from e

        body = self.read_json(resp, ProviderProfileError, "profile fetch")
        data = body.get("data") or {}
        me = data.get("me") if isinstance(data, dict) else None
        if not isinstance(me, dict):
            raise ProviderProfileError("profile response has no 'me' object", platform=self.platform.value)

        external_id = optional_str(me.get("externalId"))
        if not external_id:
            raise ProviderProfileError("Snapchat externalId missing from profile", platform=self.platform.value)

        bitmoji = me.get("bitmoji") or {}
        return NormalizedProfile(
            platform=self.platform,
            platform_user_id=external_id,
            email=None,  # Snap Kit has no email scope
            display_name=optional_str(me.get("displayName")),
            profile_picture_url=optional_str(bitmoji.get("avatar")) if isinstance(bitmoji, dict) else None,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_expires_at=self.token_expires_at(token),
        )
