import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from socialauth.api.dependencies import (
    get_account_linker,
    get_current_identity,
    get_identity_resolver,
    get_provider,
    get_session_issuer,
    get_state_signer,
    http_error,
)
from socialauth.auth.flow import LinkingOrchestrator
from socialauth.auth.identity import IdentityResolver
from socialauth.auth.jwt import OAuthStateSigner, SessionClaims, SessionIssuer
from socialauth.auth.linking import AccountLinker
from socialauth.auth.providers.base import ProviderAdapter
from socialauth.config import settings
from socialauth.exceptions import InvalidStateError
from socialauth.schemas.auth import AuthUrlResponse, IdentityResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/oauth/{platform}/login")
async def oauth_login(
    provider: ProviderAdapter = Depends(get_provider),
    state_signer: OAuthStateSigner = Depends(get_state_signer),
):
    """Redirect the browser to the platform's authorization page."""
    state = state_signer.issue(provider.platform.value)
    return RedirectResponse(url=provider.build_authorization_url(state), status_code=302)


@router.get("/oauth/{platform}/url", response_model=AuthUrlResponse)
async def oauth_url(
    provider: ProviderAdapter = Depends(get_provider),
    state_signer: OAuthStateSigner = Depends(get_state_signer),
):
    """Authorization URL as JSON, for front-ends that navigate themselves."""
    state = state_signer.issue(provider.platform.value)
    return AuthUrlResponse(auth_url=provider.build_authorization_url(state))


@router.get("/oauth/{platform}/callback")
async def oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    provider: ProviderAdapter = Depends(get_provider),
    state_signer: OAuthStateSigner = Depends(get_state_signer),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    linker: AccountLinker = Depends(get_account_linker),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    """
    Complete the OAuth flow for one platform.

    On success the browser is sent to the front-end with the session token;
    on failure the response carries the failure kind's status and a generic
    message.
    """
    if error:
        # User declined, or the provider refused before issuing a code
        logger.info("%s authorization returned error '%s'", provider.platform.label, error)
        raise HTTPException(status_code=400, detail="Authorization was not granted")
    if not code:
        raise HTTPException(status_code=400, detail="Authorization code not found")
    if not state:
        raise http_error(InvalidStateError("state missing"))
    try:
        state_signer.verify(state, provider.platform.value)
    except InvalidStateError as e:
        logger.warning("Rejected %s callback: %s", provider.platform.label, e)
        raise http_error(e)

    orchestrator = LinkingOrchestrator(provider, resolver, linker, issuer)
    outcome = await orchestrator.complete(code)
    if not outcome.succeeded:
        raise http_error(outcome.error)

    query = urlencode({"token": outcome.session.token})
    return RedirectResponse(url=f"{settings.FRONTEND_URL}/auth-success?{query}", status_code=302)


@router.get("/auth/me", response_model=IdentityResponse)
async def get_me(identity: SessionClaims = Depends(get_current_identity)):
    """Identity carried by the caller's session token."""
    return IdentityResponse(user_id=identity.user_id, tenant_id=identity.tenant_id)
