"""
SQLAlchemy 2.0 adapters for the user and refresh-token ports.

Tables:
  users           soft-deleted via deleted_at, password_hash only read by
                  find_by_email_with_password_hash
  refresh_tokens  user_id is indexed but not a foreign key; rows outlive
                  soft-deleted users until the cleanup job removes them
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, String, create_engine, delete, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker, undefer
from sqlalchemy.pool import StaticPool

from .clock import SystemClock
from .contracts import (
    ClockPort, RefreshTokenRecord, RefreshTokenStorePort, User, UserRecord, UserStorePort,
)
from .errors import DuplicateKeyError


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    # deferred: only the credential lookup loads it
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, deferred=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class RefreshTokenRow(Base):
    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token: Mapped[str] = mapped_column(String(500), unique=True, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    is_revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def create_session_factory(database_url: str, *, echo: bool = False, create_tables: bool = True) -> sessionmaker:
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def _utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored here is UTC
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _to_user(row: UserRow) -> User:
    # never touches password_hash, so a deferred column stays unloaded
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        is_active=row.is_active,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
        deleted_at=_utc(row.deleted_at),
    )


def _to_record(row: UserRow) -> UserRecord:
    return UserRecord(password_hash=row.password_hash, **_to_user(row).model_dump())


def _to_token(row: RefreshTokenRow) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        token=row.token,
        user_id=row.user_id,
        expires_at=_utc(row.expires_at),
        is_revoked=row.is_revoked,
        created_at=_utc(row.created_at),
    )


class SqlAlchemyUserStore(UserStorePort):
    def __init__(self, session_factory: sessionmaker, clock: Optional[ClockPort] = None):
        self._sessions = session_factory
        self._clock = clock or SystemClock()

    def _live_by(self, session: Session, *criteria, options=()) -> Optional[UserRow]:
        stmt = select(UserRow).where(*criteria, UserRow.deleted_at.is_(None)).options(*options)
        return session.scalars(stmt).first()

    def find_by_email(self, email: str) -> Optional[User]:
        with self._sessions() as session:
            row = self._live_by(session, UserRow.email == email)
            return _to_user(row) if row else None

    def find_by_email_with_password_hash(self, email: str) -> Optional[UserRecord]:
        with self._sessions() as session:
            row = self._live_by(session, UserRow.email == email, options=[undefer(UserRow.password_hash)])
            return _to_record(row) if row else None

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._sessions() as session:
            row = self._live_by(session, UserRow.id == user_id)
            return _to_user(row) if row else None

    def create(self, *, email: str, name: str, password_hash: str) -> User:
        now = _utc(self._clock.now())
        row = UserRow(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            password_hash=password_hash,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._sessions.begin() as session:
                session.add(row)
        except IntegrityError as ex:
            raise DuplicateKeyError(f"email already taken: {email}") from ex
        return _to_user(row)

    def update(self, user_id: str, *, name: Optional[str] = None, is_active: Optional[bool] = None) -> Optional[User]:
        with self._sessions.begin() as session:
            row = self._live_by(session, UserRow.id == user_id)
            if row is None:
                return None
            if name is not None:
                row.name = name
            if is_active is not None:
                row.is_active = is_active
            row.updated_at = _utc(self._clock.now())
            session.flush()
            return _to_user(row)

    def soft_delete(self, user_id: str) -> bool:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user_id, UserRow.deleted_at.is_(None))
            .values(deleted_at=_utc(self._clock.now()))
            .execution_options(synchronize_session=False)
        )
        with self._sessions.begin() as session:
            return session.execute(stmt).rowcount > 0

    def ping(self) -> bool:
        """Round-trip to the database. Raises when it is unreachable."""
        with self._sessions() as session:
            session.execute(text("SELECT 1"))
        return True


class SqlAlchemyRefreshTokenStore(RefreshTokenStorePort):
    """
    Revocation is a conditional UPDATE on is_revoked = false, so the database
    row is the arbiter when two requests rotate the same token.
    """

    def __init__(self, session_factory: sessionmaker, clock: Optional[ClockPort] = None):
        self._sessions = session_factory
        self._clock = clock or SystemClock()

    def find_by_token(self, token: str) -> Optional[RefreshTokenRecord]:
        stmt = select(RefreshTokenRow).where(RefreshTokenRow.token == token, RefreshTokenRow.is_revoked.is_(False))
        with self._sessions() as session:
            row = session.scalars(stmt).first()
            return _to_token(row) if row else None

    def find_by_user_id(self, user_id: str) -> List[RefreshTokenRecord]:
        stmt = (
            select(RefreshTokenRow)
            .where(RefreshTokenRow.user_id == user_id, RefreshTokenRow.is_revoked.is_(False))
            .order_by(RefreshTokenRow.created_at)
        )
        with self._sessions() as session:
            return [_to_token(r) for r in session.scalars(stmt)]

    def create(self, *, token: str, user_id: str, expires_at: datetime) -> RefreshTokenRecord:
        row = RefreshTokenRow(
            id=str(uuid.uuid4()),
            token=token,
            user_id=user_id,
            expires_at=_utc(expires_at),
            is_revoked=False,
            created_at=_utc(self._clock.now()),
        )
        try:
            with self._sessions.begin() as session:
                session.add(row)
        except IntegrityError as ex:
            raise DuplicateKeyError("refresh token already stored") from ex
        return _to_token(row)

    def revoke_by_token(self, token: str) -> bool:
        stmt = (
            update(RefreshTokenRow)
            .where(RefreshTokenRow.token == token, RefreshTokenRow.is_revoked.is_(False))
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        with self._sessions.begin() as session:
            return session.execute(stmt).rowcount > 0

    def revoke_all_by_user_id(self, user_id: str) -> bool:
        stmt = (
            update(RefreshTokenRow)
            .where(RefreshTokenRow.user_id == user_id, RefreshTokenRow.is_revoked.is_(False))
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        with self._sessions.begin() as session:
            return session.execute(stmt).rowcount > 0

    def delete_expired_before(self, now: datetime) -> int:
        stmt = (
            delete(RefreshTokenRow)
            .where(RefreshTokenRow.expires_at < _utc(now))
            .execution_options(synchronize_session=False)
        )
        with self._sessions.begin() as session:
            return session.execute(stmt).rowcount
