"""
Pytest fixtures and configuration for socialauth tests.

Provides:
- Environment with throwaway key material (set before the app is imported)
- Database setup/teardown
- Fake provider adapter and profile builders
- Reusable session-token helpers
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SESSION_SIGNING_KEY", "test-session-signing-key-0123456789abcdef")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "test-token-encryption-master-key")
os.environ.setdefault("META_CLIENT_ID", "meta-client-id")
os.environ.setdefault("META_CLIENT_SECRET", "meta-client-secret")
os.environ.setdefault("TIKTOK_CLIENT_KEY", "tiktok-client-key")
os.environ.setdefault("TIKTOK_CLIENT_SECRET", "tiktok-client-secret")
os.environ.setdefault("SNAPCHAT_CLIENT_ID", "snapchat-client-id")
os.environ.setdefault("SNAPCHAT_CLIENT_SECRET", "snapchat-client-secret")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from socialauth.main import app
from socialauth.models.database import Base, SessionLocal, engine
from socialauth.models.social_account import Platform
from socialauth.auth.jwt import SessionIssuer, SigningKeys
from socialauth.auth.providers.base import NormalizedProfile, ProviderAdapter, RawToken
from socialauth.auth.store import InternalUser
from socialauth.utils.crypto import clear_key_cache


@pytest.fixture(scope="function")
def db_session():
    """Create fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Test client on a fresh database; overrides are cleared afterwards."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_key_cache():
    clear_key_cache()


# ============================================================
# Session Tokens
# ============================================================

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def signing_keys():
    return SigningKeys("unit-test-signing-key")


@pytest.fixture
def issuer(signing_keys):
    """Session issuer pinned to FIXED_NOW."""
    return SessionIssuer(signing_keys, timedelta(hours=24), clock=lambda: FIXED_NOW)


def make_user(user_id="111", tenant_id="tenant-1", email="a@x.com", name="Ann"):
    return InternalUser(
        id=user_id,
        tenant_id=tenant_id,
        email=email,
        display_name=name,
        registered_at=FIXED_NOW,
    )


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ============================================================
# Provider Fakes
# ============================================================

def make_profile(
    platform=Platform.META,
    platform_user_id="111",
    email="a@x.com",
    display_name="Ann",
    profile_picture_url="https://example.com/ann.png",
    access_token="access-token-1",
    refresh_token=None,
    token_expires_at=FIXED_NOW + timedelta(days=60),
):
    return NormalizedProfile(
        platform=platform,
        platform_user_id=platform_user_id,
        email=email,
        display_name=display_name,
        profile_picture_url=profile_picture_url,
        access_token=access_token,
        refresh_token=refresh_token,
        token_expires_at=token_expires_at,
    )


class FakeProvider(ProviderAdapter):
    """In-memory adapter: returns a canned profile or raises the given errors."""

    scope = "fake.scope"
    default_token_lifetime = timedelta(hours=1)

    def __init__(self, profile=None, exchange_error=None, profile_error=None):
        super().__init__("fake-client-id", "fake-client-secret", "http://localhost/callback")
        self.profile = profile or make_profile()
        self.platform = self.profile.platform
        self.exchange_error = exchange_error
        self.profile_error = profile_error
        self.exchanged_codes = []
        self.profile_calls = 0

    def build_authorization_url(self, state: str) -> str:
        return f"https://provider.example/authorize?state={state}"

    async def exchange_code_for_token(self, code: str) -> RawToken:
        self.exchanged_codes.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return RawToken(access_token=self.profile.access_token, refresh_token=self.profile.refresh_token)

    async def fetch_profile(self, token: RawToken) -> NormalizedProfile:
        self.profile_calls += 1
        if self.profile_error:
            raise self.profile_error
        return replace(self.profile, access_token=token.access_token)
