import hmac
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Header
from sqlalchemy.orm import Session

from socialauth.auth.account_client import INTERNAL_KEY_HEADER, AccountServiceClient
from socialauth.auth.identity import IdentityResolver
from socialauth.auth.jwt import OAuthStateSigner, SessionClaims, SessionIssuer
from socialauth.auth.linking import AccountLinker
from socialauth.auth.providers.base import ProviderAdapter
from socialauth.auth.providers.registry import ProviderRegistry
from socialauth.auth.store import CredentialStore, IdentityStore, SqlCredentialStore
from socialauth.config import settings
from socialauth.exceptions import InvalidSessionError, LinkingError
from socialauth.models.database import get_db


def http_error(error: LinkingError) -> HTTPException:
    """Client-facing form of a linking error: status and generic message only."""
    return HTTPException(status_code=error.status_code, detail=error.public_message)


# Key material is read once per process
@lru_cache
def get_session_issuer() -> SessionIssuer:
    return SessionIssuer.from_settings(settings)


@lru_cache
def get_state_signer() -> OAuthStateSigner:
    return OAuthStateSigner.from_settings(settings)


def get_provider(platform: str) -> ProviderAdapter:
    """Adapter for the {platform} path parameter."""
    try:
        return ProviderRegistry.build(platform, settings)
    except LinkingError as e:
        raise http_error(e)


def get_credential_store(db: Session = Depends(get_db)) -> CredentialStore:
    if settings.ACCOUNT_SERVICE_URL:
        return AccountServiceClient(
            settings.ACCOUNT_SERVICE_URL,
            timeout=settings.ACCOUNT_SERVICE_TIMEOUT_SECONDS,
            api_key=settings.INTERNAL_API_KEY.get_secret_value(),
        )
    return SqlCredentialStore(db)


def get_identity_resolver(db: Session = Depends(get_db)) -> IdentityResolver:
    return IdentityResolver(IdentityStore(db))


def get_account_linker(store: CredentialStore = Depends(get_credential_store)) -> AccountLinker:
    return AccountLinker(store)


async def get_current_identity(
    authorization: Optional[str] = Header(None),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> SessionClaims:
    """Bearer session token -> (user_id, tenant_id), or 401."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authorization header required")

    token = authorization.split(" ", 1)[1].strip()
    try:
        return issuer.verify(token)
    except InvalidSessionError as e:
        raise http_error(e)


async def require_internal_key(
    internal_key: Optional[str] = Header(None, alias=INTERNAL_KEY_HEADER),
) -> None:
    """Guard for service-to-service endpoints; open when no key is configured."""
    expected = settings.INTERNAL_API_KEY.get_secret_value()
    if expected and not (internal_key and hmac.compare_digest(internal_key.encode(), expected.encode())):
        raise HTTPException(status_code=403, detail="Forbidden")
