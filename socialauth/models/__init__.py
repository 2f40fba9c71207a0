from socialauth.models.database import Base, get_db, engine
from socialauth.models.user import User
from socialauth.models.social_account import SocialAccount, Platform

__all__ = [
    "Base", "get_db", "engine",
    "User", "SocialAccount", "Platform",
]
