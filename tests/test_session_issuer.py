"""
Tests for session tokens and OAuth state tokens.
"""

from datetime import timedelta

import pytest
from jose import jwt

from socialauth.auth.jwt import OAuthStateSigner, SessionIssuer, SigningKeys, key_id
from socialauth.exceptions import InvalidSessionError, InvalidStateError, SigningError
from tests.conftest import FIXED_NOW, make_user


class TestSessionIssuer:
    def test_issue_carries_identity(self, issuer):
        session = issuer.issue(make_user(user_id="111", tenant_id="T1"))

        assert session.user_id == "111"
        assert session.tenant_id == "T1"
        assert session.issued_at == FIXED_NOW
        assert session.expires_at == FIXED_NOW + timedelta(hours=24)

    def test_claims_and_kid_header(self, issuer, signing_keys):
        session = issuer.issue(make_user(user_id="111", tenant_id="T1"))

        header = jwt.get_unverified_header(session.token)
        claims = jwt.get_unverified_claims(session.token)
        assert header["alg"] == "HS256"
        assert header["kid"] == key_id("unit-test-signing-key")
        assert claims["user_id"] == "111"
        assert claims["tenant_id"] == "T1"
        assert claims["sub"] == "111"
        assert claims["iat"] == int(FIXED_NOW.timestamp())
        assert claims["exp"] == int((FIXED_NOW + timedelta(hours=24)).timestamp())

    def test_verify_round_trip(self, issuer):
        session = issuer.issue(make_user(user_id="111", tenant_id="T1"))

        claims = issuer.verify(session.token)

        assert claims.user_id == "111"
        assert claims.tenant_id == "T1"

    def test_accepted_just_before_expiry(self, issuer):
        """A 24h session is still valid at 23h59m."""
        session = issuer.issue(make_user())

        claims = issuer.verify(session.token, now=FIXED_NOW + timedelta(hours=23, minutes=59))

        assert claims.user_id == "111"

    def test_rejected_after_expiry(self, issuer):
        """A 24h session is rejected at 24h01m."""
        session = issuer.issue(make_user())

        with pytest.raises(InvalidSessionError, match="expired"):
            issuer.verify(session.token, now=FIXED_NOW + timedelta(hours=24, minutes=1))

    def test_rejected_exactly_at_expiry(self, issuer):
        session = issuer.issue(make_user())

        with pytest.raises(InvalidSessionError):
            issuer.verify(session.token, now=FIXED_NOW + timedelta(hours=24))

    def test_rejected_before_not_before(self, issuer):
        session = issuer.issue(make_user())

        with pytest.raises(InvalidSessionError, match="not yet valid"):
            issuer.verify(session.token, now=FIXED_NOW - timedelta(minutes=5))

    def test_wrong_key_rejected(self, issuer):
        """Same kid, different secret: signature check fails."""
        forged = jwt.encode(
            {"typ": "session", "user_id": "111", "tenant_id": "T1", "iat": 1, "exp": 4102444800},
            "attacker-key",
            algorithm="HS256",
            headers={"kid": key_id("unit-test-signing-key")},
        )

        with pytest.raises(InvalidSessionError, match="signature"):
            issuer.verify(forged)

    def test_unknown_kid_rejected(self, issuer):
        other = SessionIssuer(SigningKeys("some-other-key"), clock=lambda: FIXED_NOW)
        token = other.issue(make_user()).token

        with pytest.raises(InvalidSessionError, match="unknown key"):
            issuer.verify(token)

    def test_garbage_rejected(self, issuer):
        with pytest.raises(InvalidSessionError):
            issuer.verify("not-a-jwt")

    def test_missing_tenant_claim_rejected(self, signing_keys, issuer):
        token = signing_keys.sign({
            "typ": "session",
            "user_id": "111",
            "iat": int(FIXED_NOW.timestamp()),
            "exp": int((FIXED_NOW + timedelta(hours=1)).timestamp()),
        })

        with pytest.raises(InvalidSessionError, match="tenant_id"):
            issuer.verify(token)

    def test_state_token_is_not_a_session(self, signing_keys, issuer):
        state = OAuthStateSigner(signing_keys, clock=lambda: FIXED_NOW).issue("meta")

        with pytest.raises(InvalidSessionError, match="not a session"):
            issuer.verify(state)

    def test_rotation_accepts_previous_key(self):
        """Tokens signed before a rotation verify until the old key is dropped."""
        before = SessionIssuer(SigningKeys("old-key"), clock=lambda: FIXED_NOW)
        token = before.issue(make_user()).token

        after = SessionIssuer(SigningKeys("new-key", ["old-key"]), clock=lambda: FIXED_NOW)
        assert after.verify(token).user_id == "111"

        dropped = SessionIssuer(SigningKeys("new-key"), clock=lambda: FIXED_NOW)
        with pytest.raises(InvalidSessionError):
            dropped.verify(token)

    def test_rotation_signs_with_current_key(self):
        keys = SigningKeys("new-key", ["old-key"])
        token = SessionIssuer(keys, clock=lambda: FIXED_NOW).issue(make_user()).token

        assert jwt.get_unverified_header(token)["kid"] == key_id("new-key")

    def test_empty_signing_key_refused(self):
        with pytest.raises(SigningError):
            SigningKeys("")

    def test_key_unusable_for_algorithm_is_signing_error(self):
        issuer = SessionIssuer(SigningKeys("not-an-rsa-key", algorithm="RS256"), clock=lambda: FIXED_NOW)

        with pytest.raises(SigningError):
            issuer.issue(make_user())


class TestOAuthStateSigner:
    @pytest.fixture
    def now(self):
        return {"value": FIXED_NOW}

    @pytest.fixture
    def signer(self, signing_keys, now):
        return OAuthStateSigner(signing_keys, timedelta(minutes=10), clock=lambda: now["value"])

    def test_round_trip(self, signer):
        signer.verify(signer.issue("tiktok"), "tiktok")

    def test_states_are_unique(self, signer):
        assert signer.issue("meta") != signer.issue("meta")

    def test_bound_to_platform(self, signer):
        state = signer.issue("meta")

        with pytest.raises(InvalidStateError):
            signer.verify(state, "snapchat")

    def test_expires(self, signer, now):
        state = signer.issue("meta")
        now["value"] = FIXED_NOW + timedelta(minutes=11)

        with pytest.raises(InvalidStateError, match="expired"):
            signer.verify(state, "meta")

    def test_session_token_is_not_a_state(self, signer, issuer):
        token = issuer.issue(make_user()).token

        with pytest.raises(InvalidStateError):
            signer.verify(token, "meta")

    def test_tampered_state_rejected(self, signer):
        state = signer.issue("meta")

        with pytest.raises(InvalidStateError):
            signer.verify(state[:-4] + "AAAA", "meta")
