"""
HTTP client for a remote account service.

Used instead of the local SqlCredentialStore when ACCOUNT_SERVICE_URL is
set. The remote side exposes the same POST /accounts contract this service
serves itself (see socialauth.api.routes.accounts).
"""
import logging
from typing import Optional

import httpx

from socialauth.auth.store import SocialCredential, UpsertResult, UpsertStatus
from socialauth.schemas.account import SocialAccountPayload

logger = logging.getLogger(__name__)

INTERNAL_KEY_HEADER = "X-Internal-Api-Key"


class AccountServiceClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        api_key: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.transport = transport

    async def upsert(self, credential: SocialCredential) -> UpsertResult:
        """
        POST the credential to {base_url}/accounts.

        200/201 is success, 409 is a conflict, anything else (including a
        transport failure or timeout) is an error.
        """
        payload = SocialAccountPayload.from_credential(credential).model_dump(mode="json", by_alias=True)
        headers = {INTERNAL_KEY_HEADER: self.api_key} if self.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(f"{self.base_url}/accounts", json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error("Account service timed out saving %s", credential.platform_user_id)
            return UpsertResult(UpsertStatus.ERROR)
        except httpx.HTTPError as e:
            logger.error("Cannot reach account service: %s", type(e).__name__)
            return UpsertResult(UpsertStatus.ERROR)

        if resp.status_code in (200, 201):
            return UpsertResult(UpsertStatus.SUCCESS, credential)
        if resp.status_code == 409:
            logger.warning("Account service reported a conflict for %s", credential.platform_user_id)
            return UpsertResult(UpsertStatus.CONFLICT)
        logger.error("Account service answered %d for %s", resp.status_code, credential.platform_user_id)
        return UpsertResult(UpsertStatus.ERROR)
