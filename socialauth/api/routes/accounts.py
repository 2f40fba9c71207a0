import asyncio

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List

from socialauth.api.dependencies import get_current_identity, http_error, require_internal_key
from socialauth.auth.jwt import SessionClaims
from socialauth.auth.store import SqlCredentialStore, UpsertStatus
from socialauth.exceptions import StorageError
from socialauth.models.database import get_db
from socialauth.schemas.account import SocialAccountPayload, SocialAccountResponse

router = APIRouter(tags=["accounts"])


@router.post("/accounts", status_code=201, dependencies=[Depends(require_internal_key)])
async def create_or_update_account(
    payload: SocialAccountPayload,
    db: Session = Depends(get_db)
):
    """
    Create or update a social credential (service-to-service).

    201 when stored, 409 on a conflicting row, 500 when the store fails.
    The stored account is echoed without its tokens.
    """
    result = await SqlCredentialStore(db).upsert(payload.to_credential())
    if result.status is UpsertStatus.CONFLICT:
        raise HTTPException(status_code=409, detail="Social account conflicts with an existing row")
    if result.status is UpsertStatus.ERROR:
        raise HTTPException(status_code=500, detail="Failed to save social account")
    body = SocialAccountResponse.from_credential(result.credential).model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=201, content=body)


@router.get("/api/accounts", response_model=List[SocialAccountResponse])
async def list_accounts(
    identity: SessionClaims = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """List the social accounts linked to the caller's user and tenant."""
    try:
        credentials = await asyncio.to_thread(
            SqlCredentialStore(db).list_for_identity, identity.user_id, identity.tenant_id
        )
    except StorageError as e:
        raise http_error(e)
    return [SocialAccountResponse.from_credential(c) for c in credentials]
