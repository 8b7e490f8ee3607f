from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Protocol
from pydantic import BaseModel, EmailStr, Field, constr

# ---------- Unified Wire Format (UWF) ----------
class ErrorPayload(BaseModel):
    type: Literal["AUTH_ERROR","VALIDATION","NOT_FOUND","CONFLICT","INTERNAL"]
    code: constr(strip_whitespace=True, min_length=1)
    message: constr(strip_whitespace=True, min_length=1)
    details: Optional[Dict[str, Any]] = None

class MetaPayload(BaseModel):
    request_id: Optional[str] = None
    duration_ms: Optional[int] = None

class UWFResponse(BaseModel):
    ok: bool
    result: Optional[Any] = None
    error: Optional[ErrorPayload] = None
    meta: MetaPayload = Field(default_factory=MetaPayload)

# ---------- Domain Models ----------
class User(BaseModel):
    id: str
    email: str
    name: str = ""
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

class UserRecord(User):
    """Credential projection of a user. Only returned by find_by_email_with_password_hash."""
    password_hash: str

    def public(self) -> User:
        return User.model_validate(self.model_dump(exclude={"password_hash"}))

class RefreshTokenRecord(BaseModel):
    id: str
    token: str
    user_id: str
    expires_at: datetime
    is_revoked: bool = False
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

class AuthTokens(BaseModel):
    access_token: str
    refresh_token: str
    token_type: Literal["Bearer"] = "Bearer"
    expires_in: int

class CurrentUser(BaseModel):
    id: str
    email: str

class RequestContext(BaseModel):
    """Per-request data passed explicitly down to the service for log correlation."""
    request_id: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None

    def log_fields(self) -> Dict[str, Any]:
        return {"request_id": self.request_id, "client_ip": self.client_ip}

# ---------- Ports (Contracts) ----------
class TokenSignerPort(Protocol):
    """
    Signs and verifies time-limited tokens. The secret is passed per call so the
    same signer serves both access and refresh tokens with separate keys.
    """
    def sign(self, claims: Dict[str, Any], secret: str, ttl_seconds: int) -> str: ...
    def verify(self, token: str, secret: str) -> Dict[str, Any]: ...

class PasswordHasherPort(Protocol):
    def hash(self, password: str) -> str: ...
    def verify(self, password: str, password_hash: str) -> bool: ...

class UserStorePort(Protocol):
    """
    User persistence. Lookups skip soft-deleted users and never expose the
    password hash, except find_by_email_with_password_hash.
    """
    def find_by_email(self, email: str) -> Optional[User]: ...
    def find_by_email_with_password_hash(self, email: str) -> Optional[UserRecord]: ...
    def find_by_id(self, user_id: str) -> Optional[User]: ...
    def create(self, *, email: str, name: str, password_hash: str) -> User: ...
    def update(self, user_id: str, *, name: Optional[str] = None, is_active: Optional[bool] = None) -> Optional[User]: ...
    def soft_delete(self, user_id: str) -> bool: ...
    def ping(self) -> bool: ...

class RefreshTokenStorePort(Protocol):
    """
    Refresh token persistence. find_* only match non-revoked rows.
    revoke_by_token only flips a live row, so its return value tells the caller
    whether it won a concurrent rotation.
    """
    def find_by_token(self, token: str) -> Optional[RefreshTokenRecord]: ...
    def find_by_user_id(self, user_id: str) -> List[RefreshTokenRecord]: ...
    def create(self, *, token: str, user_id: str, expires_at: datetime) -> RefreshTokenRecord: ...
    def revoke_by_token(self, token: str) -> bool: ...
    def revoke_all_by_user_id(self, user_id: str) -> bool: ...
    def delete_expired_before(self, now: datetime) -> int: ...

class ClockPort(Protocol):
    def now(self) -> datetime: ...

# ---------- Service I/O ----------
class RegisterRequest(BaseModel):
    email: EmailStr
    password: constr(min_length=6, max_length=72)
    name: Optional[constr(strip_whitespace=True, max_length=100)] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class RefreshRequest(BaseModel):
    refresh_token: constr(strip_whitespace=True, min_length=1)

# ---------- Errors ----------
class AuthErrorCodes:
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    REFRESH_TOKEN_EXPIRED = "REFRESH_TOKEN_EXPIRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
