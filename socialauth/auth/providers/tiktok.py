from datetime import timedelta

import httpx
from authlib.common.urls import add_params_to_uri

from socialauth.auth.providers.base import NormalizedProfile, ProviderAdapter, RawToken, optional_str
from socialauth.exceptions import ProviderExchangeError, ProviderProfileError
from socialauth.models.social_account import Platform

# TikTok exposes no profile call for these scopes here; display fields are placeholders
PLACEHOLDER_NAME = "TikTok User"
PLACEHOLDER_PICTURE = "https://placehold.co/100x100/FF0050/FFFFFF?text=T"


class TikTokOAuth(ProviderAdapter):
    """
    TikTok Login Kit.

    TikTok deviates from plain OAuth2 in two places: the client id is sent
    as ``client_key``, and the code grant is a JSON POST. The user's
    identity (``open_id``) arrives with the token, so fetch_profile makes
    no network call; display name and avatar are fixed placeholders.
    """

    platform = Platform.TIKTOK
    scope = "user.info.basic,video.list,video.upload"
    default_token_lifetime = timedelta(hours=24)

    authorize_endpoint = "https://www.tiktok.com/v2/auth/authorize"
    token_endpoint = "https://open-api.tiktok.com/oauth/access_token/"

    def build_authorization_url(self, state: str) -> str:
        return add_params_to_uri(self.authorize_endpoint, [
            ("client_key", self.client_id),
            ("redirect_uri", self.redirect_uri),
            ("scope", self.scope),
            ("response_type", "code"),
            ("state", state),
        ])

    async def exchange_code_for_token(self, code: str) -> RawToken:
        payload = {
            "client_key": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
        }
        try:
            async with self.http_client() as client:
                resp = await client.post(self.token_endpoint, json=payload)
        except httpx.HTTPError as e:
            raise self.transport_error(e, ProviderExchangeError, "token exchange") from e

        body = self.read_json(resp, ProviderExchangeError, "token exchange")
        # Older API versions wrap the grant in "data" and report errors in-band
        data = body.get("data") if isinstance(body.get("data"), dict) else body
        if data.get("error_code") or body.get("error"):
            raise ProviderExchangeError("token exchange rejected by provider", platform=self.platform.value)

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ProviderExchangeError("access token missing from token response", platform=self.platform.value)

        expires_in = data.get("expires_in")
        return RawToken(
            access_token=access_token,
            refresh_token=optional_str(data.get("refresh_token")),
            expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else None,
            scope=optional_str(data.get("scope")),
            extra={"open_id": data.get("open_id")},
        )

    async def fetch_profile(self, token: RawToken) -> NormalizedProfile:
        open_id = optional_str(token.extra.get("open_id"))
        if not open_id:
            raise ProviderProfileError("open_id missing from token response", platform=self.platform.value)

        return NormalizedProfile(
            platform=self.platform,
            platform_user_id=open_id,
            email=None,  # TikTok never shares an email address
            display_name=PLACEHOLDER_NAME,
            profile_picture_url=PLACEHOLDER_PICTURE,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_expires_at=self.token_expires_at(token),
        )
