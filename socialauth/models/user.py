from sqlalchemy import Column, String, DateTime, Enum
from datetime import datetime, timezone
from socialauth.models.database import Base
from socialauth.models.social_account import Platform

class User(Base):
    __tablename__ = "users"

    # Platform user id of the first registration
    id = Column(String, primary_key=True)
    # Minted once per person, never updated
    tenant_id = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    # Platform the id above belongs to
    platform = Column(Enum(Platform), nullable=True)
    registered_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
