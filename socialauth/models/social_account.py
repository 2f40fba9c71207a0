from sqlalchemy import Column, String, DateTime, Enum
from datetime import datetime, timezone
import enum
from socialauth.models.database import Base

class Platform(str, enum.Enum):
    META = "meta"
    TIKTOK = "tiktok"
    SNAPCHAT = "snapchat"

    @property
    def label(self) -> str:
        return {"meta": "Meta", "tiktok": "TikTok", "snapchat": "Snapchat"}[self.value]

class SocialAccount(Base):
    __tablename__ = "social_accounts"

    # One row per platform identity; relinking updates this row in place
    platform_user_id = Column(String, primary_key=True)
    platform = Column(Enum(Platform), nullable=False)
    user_id = Column(String, nullable=False, index=True)
    tenant_id = Column(String, nullable=False, index=True)
    # Fernet ciphertexts, see socialauth.utils.crypto
    access_token = Column(String, nullable=False)
    refresh_token = Column(String, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    username = Column(String, nullable=True)
    profile_pic = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

