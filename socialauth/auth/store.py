"""
Identity and credential persistence.

IdentityStore and SqlCredentialStore wrap one request's SQLAlchemy session;
they are constructed per request and handed to the resolver and linker.
Every write is a single INSERT ... ON CONFLICT statement so that concurrent
callbacks, possibly on different instances, are serialized by the database
rather than by in-process locks.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from socialauth.exceptions import StorageError
from socialauth.models.social_account import Platform, SocialAccount
from socialauth.models.user import User
from socialauth.utils.crypto import decrypt, encrypt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InternalUser:
    id: str
    tenant_id: str
    email: str
    display_name: Optional[str]
    registered_at: datetime
    platform: Optional[Platform] = None


@dataclass(frozen=True)
class SocialCredential:
    platform_user_id: str
    platform: Platform
    user_id: str
    tenant_id: str
    access_token: str
    refresh_token: Optional[str]
    expires_at: Optional[datetime]
    username: Optional[str]
    profile_picture_url: Optional[str]


class UpsertStatus(str, enum.Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    ERROR = "error"


@dataclass(frozen=True)
class UpsertResult:
    status: UpsertStatus
    credential: Optional[SocialCredential] = None

    @property
    def ok(self) -> bool:
        return self.status is UpsertStatus.SUCCESS


@runtime_checkable
class CredentialStore(Protocol):
    """The account persistence collaborator: idempotent create-or-update."""

    async def upsert(self, credential: SocialCredential) -> UpsertResult:
        ...


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def dialect_insert(db: Session, model):
    """Insert construct with ON CONFLICT support for the bound database."""
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise StorageError(f"Unsupported database dialect '{name}' for upserts")


class IdentityStore:
    """Reads and insert-if-absent writes of InternalUser rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[InternalUser]:
        return self._first(User.email == email)

    def get_by_id(self, user_id: str) -> Optional[InternalUser]:
        return self._first(User.id == user_id)

    def insert_if_absent(self, user: InternalUser) -> bool:
        """
        Insert the user unless its id or email is already taken.

        Existing rows are never modified, which keeps tenant_id immutable.

        Returns:
            True if this call created the row.
        """
        stmt = dialect_insert(self.db, User).values(
            id=user.id,
            tenant_id=user.tenant_id,
            email=user.email,
            name=user.display_name,
            platform=user.platform,
            registered_at=user.registered_at,
        ).on_conflict_do_nothing()
        try:
            created = self.db.execute(stmt).rowcount == 1
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to insert user %s: %s", user.id, type(e).__name__)
            raise StorageError("failed to save user") from e
        return created

    def _first(self, criterion) -> Optional[InternalUser]:
        try:
            row = self.db.query(User).filter(criterion).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to query users: %s", type(e).__name__)
            raise StorageError("failed to read user") from e
        if row is None:
            return None
        return InternalUser(
            id=row.id,
            tenant_id=row.tenant_id,
            email=row.email,
            display_name=row.name,
            registered_at=as_utc(row.registered_at),
            platform=row.platform,
        )


class SqlCredentialStore:
    """Local-database implementation of the account persistence collaborator."""

    def __init__(self, db: Session):
        self.db = db

    async def upsert(self, credential: SocialCredential) -> UpsertResult:
        # Database I/O and key derivation block, so they run off the event loop
        return await asyncio.to_thread(self.upsert_sync, credential)

    def upsert_sync(self, credential: SocialCredential) -> UpsertResult:
        """
        Create or update the row for credential.platform_user_id.

        user_id and tenant_id always take the new values. The remaining
        fields only change when the new value is non-empty, so a login that
        returns no refresh token keeps the stored one. All of it happens in
        one statement; concurrent writers resolve to the last one.

        A row held by the same id on another platform is left untouched and
        reported as CONFLICT.
        """
        platform = credential.platform.value
        now = datetime.now(timezone.utc)
        stmt = dialect_insert(self.db, SocialAccount).values(
            platform_user_id=credential.platform_user_id,
            platform=credential.platform,
            user_id=credential.user_id,
            tenant_id=credential.tenant_id,
            access_token=encrypt(credential.access_token, platform, credential.platform_user_id),
            refresh_token=encrypt(credential.refresh_token, platform, credential.platform_user_id),
            expires_at=credential.expires_at,
            username=credential.username,
            profile_pic=credential.profile_picture_url,
            created_at=now,
            updated_at=now,
        )
        table = SocialAccount.__table__
        excluded = stmt.excluded

        def keep_unless_given(column: str):
            return func.coalesce(func.nullif(excluded[column], ""), table.c[column])

        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.platform_user_id],
            set_={
                "user_id": excluded.user_id,
                "tenant_id": excluded.tenant_id,
                "access_token": keep_unless_given("access_token"),
                "refresh_token": keep_unless_given("refresh_token"),
                "expires_at": func.coalesce(excluded.expires_at, table.c.expires_at),
                "username": keep_unless_given("username"),
                "profile_pic": keep_unless_given("profile_pic"),
                "updated_at": excluded.updated_at,
            },
            where=table.c.platform == excluded.platform,
        )
        try:
            written = self.db.execute(stmt).rowcount
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Conflict saving %s account %s: %s", platform, credential.platform_user_id, type(e).__name__)
            return UpsertResult(UpsertStatus.CONFLICT)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to save %s account %s: %s", platform, credential.platform_user_id, type(e).__name__)
            return UpsertResult(UpsertStatus.ERROR)

        if written == 0:
            logger.warning(
                "%s account %s is already linked on another platform",
                credential.platform.label, credential.platform_user_id
            )
            return UpsertResult(UpsertStatus.CONFLICT)

        try:
            stored = self.get(credential.platform_user_id)
        except StorageError:
            return UpsertResult(UpsertStatus.ERROR)
        return UpsertResult(UpsertStatus.SUCCESS, stored)

    def get(self, platform_user_id: str) -> Optional[SocialCredential]:
        try:
            row = self.db.query(SocialAccount).filter(
                SocialAccount.platform_user_id == platform_user_id
            ).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("failed to read social account") from e
        return self._to_credential(row) if row else None

    def list_for_identity(self, user_id: str, tenant_id: str) -> list[SocialCredential]:
        """Social accounts owned by a (user, tenant) pair."""
        try:
            rows = self.db.query(SocialAccount).filter(
                SocialAccount.user_id == user_id,
                SocialAccount.tenant_id == tenant_id
            ).order_by(SocialAccount.created_at).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("failed to read social accounts") from e
        return [self._to_credential(row) for row in rows]

    def _to_credential(self, row: SocialAccount) -> SocialCredential:
        platform = row.platform.value
        try:
            access_token = decrypt(row.access_token, platform, row.platform_user_id)
            refresh_token = decrypt(row.refresh_token, platform, row.platform_user_id)
        except ValueError as e:
            raise StorageError(f"stored tokens for {row.platform_user_id} cannot be decrypted") from e
        return SocialCredential(
            platform_user_id=row.platform_user_id,
            platform=row.platform,
            user_id=row.user_id,
            tenant_id=row.tenant_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=as_utc(row.expires_at),
            username=row.username,
            profile_picture_url=row.profile_pic,
        )
