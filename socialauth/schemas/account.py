from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional
from socialauth.models.social_account import Platform
from socialauth.auth.store import SocialCredential

class SocialAccountPayload(BaseModel):
    """Wire shape of POST /accounts (camelCase, full credential)."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    tenant_id: str = Field(alias="tenantId", min_length=1)
    platform: Platform
    platform_user_id: str = Field(alias="platformUserId", min_length=1)
    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    username: Optional[str] = None
    profile_pic: Optional[str] = Field(default=None, alias="profilePic")

    @classmethod
    def from_credential(cls, credential: SocialCredential) -> "SocialAccountPayload":
        return cls(
            user_id=credential.user_id,
            tenant_id=credential.tenant_id,
            platform=credential.platform,
            platform_user_id=credential.platform_user_id,
            access_token=credential.access_token,
            refresh_token=credential.refresh_token,
            expires_at=credential.expires_at,
            username=credential.username,
            profile_pic=credential.profile_picture_url,
        )

    def to_credential(self) -> SocialCredential:
        return SocialCredential(
            platform_user_id=self.platform_user_id,
            platform=self.platform,
            user_id=self.user_id,
            tenant_id=self.tenant_id,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
            username=self.username,
            profile_picture_url=self.profile_pic,
        )

class SocialAccountResponse(BaseModel):
    """Linked account as shown to its owner; tokens are never returned."""
    user_id: str = Field(serialization_alias="userId")
    tenant_id: str = Field(serialization_alias="tenantId")
    platform: Platform
    platform_user_id: str = Field(serialization_alias="platformUserId")
    expires_at: Optional[datetime] = Field(default=None, serialization_alias="expiresAt")
    username: Optional[str] = None
    profile_pic: Optional[str] = Field(default=None, serialization_alias="profilePic")
    has_refresh_token: bool = Field(default=False, serialization_alias="hasRefreshToken")

    @classmethod
    def from_credential(cls, credential: SocialCredential) -> "SocialAccountResponse":
        return cls(
            user_id=credential.user_id,
            tenant_id=credential.tenant_id,
            platform=credential.platform,
            platform_user_id=credential.platform_user_id,
            expires_at=credential.expires_at,
            username=credential.username,
            profile_pic=credential.profile_picture_url,
            has_refresh_token=bool(credential.refresh_token),
        )
