from datetime import timedelta

import httpx
from authlib.integrations.httpx_client import AsyncOAuth2Client

from socialauth.auth.providers.base import NormalizedProfile, ProviderAdapter, RawToken, optional_str
from socialauth.exceptions import ProviderExchangeError, ProviderProfileError
from socialauth.models.social_account import Platform

GRAPH_API = "https://graph.facebook.com/v19.0"


class MetaOAuth(ProviderAdapter):
    platform = Platform.META
    scope = "email,public_profile,pages_show_list,instagram_basic"
    # Long-lived user tokens last about 60 days
    default_token_lifetime = timedelta(days=60)

    authorize_endpoint = "https://www.facebook.com/v19.0/dialog/oauth"
    token_endpoint = f"{GRAPH_API}/oauth/access_token"
    profile_endpoint = f"{GRAPH_API}/me"

    def build_authorization_url(self, state: str) -> str:
        client = AsyncOAuth2Client(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            scope=self.scope
        )
        url, _ = client.create_authorization_url(self.authorize_endpoint, state=state)
        return url

    async def exchange_code_for_token(self, code: str) -> RawToken:
        # Graph API takes the grant as a plain GET with query parameters
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "client_secret": self.client_secret,
            "code": code,
        }
        try:
            async with self.http_client() as client:
                resp = await client.get(self.token_endpoint, params=params)
        except httpx.HTTPError as e:
            raise self.transport_error(e, ProviderExchangeError, "token exchange") from e

        data = self.read_json(resp, ProviderExchangeError, "token exchange")
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ProviderExchangeError("access token missing from token response", platform=self.platform.value)

        expires_in = data.get("expires_in")
        return RawToken(
            access_token=access_token,
            expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else None,
        )

    async def fetch_profile(self, token: RawToken) -> NormalizedProfile:
        params = {
            "fields": "id,name,email,picture",
            "access_token": token.access_token,
        }
        try:
            async with self.http_client() as client:
                resp = await client.get(self.profile_endpoint, params=params)
        except httpx.HTTPError as e:
            raise self.transport_error(e, ProviderProfileError, "profile fetch") from e

        data = self.read_json(resp, ProviderProfileError, "profile fetch")
        platform_user_id = optional_str(data.get("id"))
        if not platform_user_id:
            raise ProviderProfileError("Meta user id missing from profile", platform=self.platform.value)

        # picture is {"data": {"url": ...}} when present
        picture = data.get("picture") or {}
        picture_data = picture.get("data") if isinstance(picture, dict) else None
        picture_url = picture_data.get("url") if isinstance(picture_data, dict) else None

        return NormalizedProfile(
            platform=self.platform,
            platform_user_id=platform_user_id,
            email=optional_str(data.get("email")),
            display_name=optional_str(data.get("name")),
            profile_picture_url=optional_str(picture_url),
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_expires_at=self.token_expires_at(token),
        )
