"""
Signed session and OAuth-state tokens.

Both are HS256 JWTs signed with externally supplied key material. The
first key of the ring signs; every key in the ring verifies, so a key can
be rotated by moving it to SESSION_PREVIOUS_SIGNING_KEYS. Each token names
its signing key in the ``kid`` header.

Expiry is checked here against an injectable clock rather than inside
jose, so verification can be tested at exact instants.
"""
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Type

from jose import jwt, JWTError
from jose.exceptions import JOSEError

from socialauth.auth.store import InternalUser
from socialauth.config import Settings
from socialauth.exceptions import InvalidSessionError, InvalidStateError, LinkingError, SigningError

logger = logging.getLogger(__name__)

SESSION_TYPE = "session"
STATE_TYPE = "oauth_state"
REQUIRED_SESSION_CLAIMS = ("user_id", "tenant_id", "iat", "exp")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def key_id(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class SessionToken:
    token: str
    user_id: str
    tenant_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    tenant_id: str


class SigningKeys:
    """Current signing key plus older keys still accepted for verification."""

    def __init__(self, current: str, previous: Optional[list[str]] = None, algorithm: str = "HS256"):
        if not current:
            raise SigningError("no session signing key configured")
        self.current = current
        self.algorithm = algorithm
        self._by_kid = {key_id(k): k for k in [current, *(previous or [])]}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningKeys":
        return cls(
            settings.SESSION_SIGNING_KEY.get_secret_value(),
            settings.previous_signing_keys,
            settings.JWT_ALGORITHM,
        )

    def sign(self, claims: dict) -> str:
        try:
            return jwt.encode(
                claims,
                self.current,
                algorithm=self.algorithm,
                headers={"kid": key_id(self.current)}
            )
        except JOSEError as e:
            raise SigningError("could not sign token") from e

    def decode(self, token: str, error_cls: Type[LinkingError]) -> dict:
        """Verify the signature and return the claims. Time claims are not checked."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            raise error_cls("malformed token")

        key = self._by_kid.get(header.get("kid"))
        if key is None:
            raise error_cls("token signed with an unknown key")

        try:
            return jwt.decode(
                token,
                key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_nbf": False, "verify_iat": False, "verify_aud": False},
            )
        except JOSEError:
            raise error_cls("signature verification failed")


class SessionIssuer:
    def __init__(self, keys: SigningKeys, ttl: timedelta = timedelta(hours=24), clock: Clock = utcnow):
        self.keys = keys
        self.ttl = ttl
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionIssuer":
        return cls(SigningKeys.from_settings(settings), timedelta(hours=settings.SESSION_TTL_HOURS))

    def issue(self, user: InternalUser) -> SessionToken:
        """Sign a session for the user's identity. Raises SigningError."""
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + self.ttl
        claims = {
            "typ": SESSION_TYPE,
            "sub": user.id,
            "user_id": user.id,
            "tenant_id": user.tenant_id,
            "iat": int(issued_at.timestamp()),
            "nbf": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = self.keys.sign(claims)
        return SessionToken(
            token=token,
            user_id=user.id,
            tenant_id=user.tenant_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(self, token: str, now: Optional[datetime] = None) -> SessionClaims:
        """
        Verify a bearer session token.

        Rejects a bad signature, an unknown key, a missing claim, an expiry
        at or before now, and a not-before in the future. No leeway.

        Raises:
            InvalidSessionError
        """
        claims = self.keys.decode(token, InvalidSessionError)
        if claims.get("typ") != SESSION_TYPE:
            raise InvalidSessionError("not a session token")
        missing = [name for name in REQUIRED_SESSION_CLAIMS if not claims.get(name)]
        if missing:
            raise InvalidSessionError(f"missing claims: {', '.join(missing)}")

        now_ts = (now or self.clock()).timestamp()
        exp = claims["exp"]
        if not isinstance(exp, (int, float)) or now_ts >= exp:
            raise InvalidSessionError("token expired")
        nbf = claims.get("nbf")
        if isinstance(nbf, (int, float)) and now_ts < nbf:
            raise InvalidSessionError("token not yet valid")

        return SessionClaims(user_id=str(claims["user_id"]), tenant_id=str(claims["tenant_id"]))


class OAuthStateSigner:
    """
    Stateless CSRF protection for the authorization round trip.

    The state is a short-lived JWT bound to one platform, so any instance
    can validate a callback without shared storage.
    """

    def __init__(self, keys: SigningKeys, ttl: timedelta = timedelta(minutes=10), clock: Clock = utcnow):
        self.keys = keys
        self.ttl = ttl
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "OAuthStateSigner":
        return cls(SigningKeys.from_settings(settings), timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES))

    def issue(self, platform: str) -> str:
        now = self.clock()
        return self.keys.sign({
            "typ": STATE_TYPE,
            "platform": platform,
            "nonce": secrets.token_urlsafe(16),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        })

    def verify(self, state: str, platform: str) -> None:
        """Raises InvalidStateError unless state was issued for platform and is unexpired."""
        claims = self.keys.decode(state, InvalidStateError)
        if claims.get("typ") != STATE_TYPE or claims.get("platform") != platform:
            raise InvalidStateError("state was not issued for this platform", platform=platform)
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or self.clock().timestamp() >= exp:
            raise InvalidStateError("state expired", platform=platform)
