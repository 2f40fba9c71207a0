from socialauth.schemas.auth import AuthUrlResponse, IdentityResponse
from socialauth.schemas.account import SocialAccountPayload, SocialAccountResponse

__all__ = [
    "AuthUrlResponse", "IdentityResponse",
    "SocialAccountPayload", "SocialAccountResponse",
]
