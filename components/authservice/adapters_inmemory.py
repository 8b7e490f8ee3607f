from __future__ import annotations
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from .clock import SystemClock
from .contracts import (
    ClockPort, RefreshTokenRecord, RefreshTokenStorePort, User, UserRecord, UserStorePort,
)
from .errors import DuplicateKeyError


class InMemoryUserStore(UserStorePort):
    """
    Test/dev user store keyed by id and email. Emails of soft-deleted users
    stay reserved, same as a unique column would.
    """

    def __init__(self, clock: Optional[ClockPort] = None):
        self._lock = threading.RLock()
        self._by_id: Dict[str, UserRecord] = {}
        self._id_by_email: Dict[str, str] = {}
        self._clock = clock or SystemClock()

    def _live(self, rec: Optional[UserRecord]) -> Optional[UserRecord]:
        if rec is None or rec.deleted_at is not None:
            return None
        return rec

    def _live_by_email(self, email: str) -> Optional[UserRecord]:
        user_id = self._id_by_email.get(email)
        return self._live(self._by_id.get(user_id)) if user_id else None

    def find_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            rec = self._live_by_email(email)
            return rec.public() if rec else None

    def find_by_email_with_password_hash(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            rec = self._live_by_email(email)
            return rec.model_copy() if rec else None

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            rec = self._live(self._by_id.get(user_id))
            return rec.public() if rec else None

    def create(self, *, email: str, name: str, password_hash: str) -> User:
        with self._lock:
            if email in self._id_by_email:
                raise DuplicateKeyError(f"email already taken: {email}")
            now = self._clock.now()
            rec = UserRecord(
                id=str(uuid.uuid4()),
                email=email,
                name=name,
                password_hash=password_hash,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            self._by_id[rec.id] = rec
            self._id_by_email[email] = rec.id
            return rec.public()

    def update(self, user_id: str, *, name: Optional[str] = None, is_active: Optional[bool] = None) -> Optional[User]:
        with self._lock:
            rec = self._live(self._by_id.get(user_id))
            if rec is None:
                return None
            if name is not None:
                rec.name = name
            if is_active is not None:
                rec.is_active = is_active
            rec.updated_at = self._clock.now()
            return rec.public()

    def soft_delete(self, user_id: str) -> bool:
        with self._lock:
            rec = self._live(self._by_id.get(user_id))
            if rec is None:
                return False
            rec.deleted_at = self._clock.now()
            return True

    def ping(self) -> bool:
        return True


class InMemoryRefreshTokenStore(RefreshTokenStorePort):
    """
    Refresh token rows keyed by token string. The lock makes revoke_by_token a
    compare-and-set, which is what rotation relies on under concurrency.
    """

    def __init__(self, clock: Optional[ClockPort] = None):
        self._lock = threading.RLock()
        self._rows: Dict[str, RefreshTokenRecord] = {}
        self._clock = clock or SystemClock()

    def find_by_token(self, token: str) -> Optional[RefreshTokenRecord]:
        with self._lock:
            row = self._rows.get(token)
            if row is None or row.is_revoked:
                return None
            return row.model_copy()

    def find_by_user_id(self, user_id: str) -> List[RefreshTokenRecord]:
        with self._lock:
            return [r.model_copy() for r in self._rows.values() if r.user_id == user_id and not r.is_revoked]

    def create(self, *, token: str, user_id: str, expires_at: datetime) -> RefreshTokenRecord:
        with self._lock:
            if token in self._rows:
                raise DuplicateKeyError("refresh token already stored")
            row = RefreshTokenRecord(
                id=str(uuid.uuid4()),
                token=token,
                user_id=user_id,
                expires_at=expires_at,
                created_at=self._clock.now(),
            )
            self._rows[token] = row
            return row.model_copy()

    def revoke_by_token(self, token: str) -> bool:
        with self._lock:
            row = self._rows.get(token)
            if row is None or row.is_revoked:
                return False
            row.is_revoked = True
            return True

    def revoke_all_by_user_id(self, user_id: str) -> bool:
        with self._lock:
            affected = 0
            for row in self._rows.values():
                if row.user_id == user_id and not row.is_revoked:
                    row.is_revoked = True
                    affected += 1
            return affected > 0

    def delete_expired_before(self, now: datetime) -> int:
        with self._lock:
            expired = [t for t, r in self._rows.items() if r.expires_at < now]
            for t in expired:
                del self._rows[t]
            return len(expired)
