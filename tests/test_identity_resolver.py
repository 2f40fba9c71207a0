"""
Tests for identity resolution (platform profile -> internal user and tenant).
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from socialauth.auth.identity import IdentityResolver, synthetic_email
from socialauth.auth.store import IdentityStore
from socialauth.exceptions import StorageError
from socialauth.models.social_account import Platform
from socialauth.models.user import User
from tests.conftest import FIXED_NOW, make_profile


@pytest.fixture
def resolver(db_session):
    return IdentityResolver(IdentityStore(db_session), clock=lambda: FIXED_NOW)


class TestResolveNewUsers:
    def test_first_login_mints_user_and_tenant(self, resolver, db_session):
        user, is_new = resolver.resolve(make_profile(platform_user_id="111", email="a@x.com"))

        assert is_new is True
        assert user.id == "111"
        assert user.email == "a@x.com"
        assert user.display_name == "Ann"
        assert user.tenant_id
        assert user.registered_at == FIXED_NOW
        assert db_session.query(User).count() == 1

    def test_returning_user_keeps_tenant(self, resolver):
        first, _ = resolver.resolve(make_profile())
        second, is_new = resolver.resolve(make_profile())

        assert is_new is False
        assert second.id == first.id
        assert second.tenant_id == first.tenant_id

    def test_distinct_people_get_distinct_tenants(self, resolver):
        ann, _ = resolver.resolve(make_profile(platform_user_id="111", email="a@x.com"))
        bob, _ = resolver.resolve(make_profile(platform_user_id="333", email="b@x.com"))

        assert ann.tenant_id != bob.tenant_id


class TestResolveByEmail:
    def test_second_platform_merges_by_email(self, resolver, db_session):
        """Meta 111 then TikTok 222 with the same email share user and tenant."""
        meta_user, _ = resolver.resolve(make_profile(Platform.META, "111", "a@x.com"))
        tiktok_user, is_new = resolver.resolve(make_profile(Platform.TIKTOK, "222", "a@x.com"))

        assert is_new is False
        assert tiktok_user.id == "111"
        assert tiktok_user.tenant_id == meta_user.tenant_id
        assert db_session.query(User).count() == 1

    def test_email_match_is_case_insensitive(self, resolver):
        first, _ = resolver.resolve(make_profile(platform_user_id="111", email="Ann@X.com"))
        second, is_new = resolver.resolve(make_profile(Platform.SNAPCHAT, "444", "ann@x.COM "))

        assert first.email == "ann@x.com"
        assert is_new is False
        assert second.tenant_id == first.tenant_id


class TestResolveWithoutEmail:
    def test_synthetic_email_format(self):
        profile = make_profile(Platform.TIKTOK, "222", email=None)

        assert synthetic_email(profile) == "222@tiktok"

    def test_email_less_profiles_never_merge(self, resolver):
        one, _ = resolver.resolve(make_profile(Platform.TIKTOK, "222", email=None))
        two, _ = resolver.resolve(make_profile(Platform.TIKTOK, "223", email=None))

        assert one.tenant_id != two.tenant_id
        assert one.email == "222@tiktok"

    def test_email_less_profile_does_not_join_emailed_user(self, resolver):
        ann, _ = resolver.resolve(make_profile(Platform.META, "111", "a@x.com"))
        tiktok, is_new = resolver.resolve(make_profile(Platform.TIKTOK, "222", email=None))

        assert is_new is True
        assert tiktok.tenant_id != ann.tenant_id

    def test_returning_email_less_profile(self, resolver):
        first, _ = resolver.resolve(make_profile(Platform.TIKTOK, "222", email=None))
        second, is_new = resolver.resolve(make_profile(Platform.TIKTOK, "222", email=None))

        assert is_new is False
        assert second.tenant_id == first.tenant_id


class TestResolveConcurrency:
    def test_lost_insert_race_reads_back_winner(self, db_session):
        """Another instance inserts between our lookup and our insert."""
        winner_store = IdentityStore(db_session)

        class RacingStore(IdentityStore):
            def get_by_email(self, email):
                # First lookup misses; the winner commits right after
                if not getattr(self, "raced", False):
                    self.raced = True
                    IdentityResolver(winner_store, clock=lambda: FIXED_NOW).resolve(make_profile())
                    return None
                return super().get_by_email(email)

        resolver = IdentityResolver(RacingStore(db_session), clock=lambda: FIXED_NOW)
        user, is_new = resolver.resolve(make_profile())

        assert is_new is False
        assert user.tenant_id == winner_store.get_by_email("a@x.com").tenant_id
        assert db_session.query(User).count() == 1

    def test_same_id_on_other_platform_is_not_merged(self, resolver, db_session):
        """An email-less TikTok open_id equal to a Meta user id stays out of that tenant."""
        ann, _ = resolver.resolve(make_profile(Platform.META, "111", "a@x.com"))

        with pytest.raises(StorageError):
            resolver.resolve(make_profile(Platform.TIKTOK, "111", email=None))

        holder = db_session.query(User).one()
        assert holder.tenant_id == ann.tenant_id
        assert holder.platform is Platform.META

    def test_registering_platform_is_stored(self, resolver):
        user, _ = resolver.resolve(make_profile(Platform.SNAPCHAT, "444", email=None))

        assert user.platform is Platform.SNAPCHAT

    def test_id_taken_by_other_email_returns_holder(self, resolver):
        """Platform user id already registered under a different email."""
        first, _ = resolver.resolve(make_profile(platform_user_id="111", email="a@x.com"))
        second, is_new = resolver.resolve(make_profile(platform_user_id="111", email="changed@x.com"))

        assert is_new is False
        assert second.tenant_id == first.tenant_id


class TestResolveStorageFailures:
    def test_unreachable_store_raises_storage_error(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

        resolver = IdentityResolver(IdentityStore(db))

        with pytest.raises(StorageError):
            resolver.resolve(make_profile())
        db.rollback.assert_called()

    def test_failed_insert_raises_storage_error(self):
        db = MagicMock()
        db.query.return_value.filter.return_value.first.return_value = None
        db.get_bind.return_value.dialect.name = "sqlite"
        db.execute.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))

        resolver = IdentityResolver(IdentityStore(db))

        with pytest.raises(StorageError):
            resolver.resolve(make_profile())
