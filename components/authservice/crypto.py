from __future__ import annotations
import time
import uuid
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from .contracts import AuthErrorCodes, PasswordHasherPort, TokenSignerPort
from .errors import VerificationError


class JWTTokenSigner(TokenSignerPort):
    """
    PyJWT-backed signer. Every token gets iat/exp and a random jti, so two
    tokens signed from the same payload in the same second still differ.
    """
    def __init__(
        self,
        *,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway_seconds: int = 0,
    ):
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.leeway_seconds = leeway_seconds

    def sign(self, claims: Dict[str, Any], secret: str, ttl_seconds: int) -> str:
        if not secret:
            raise ValueError("JWTTokenSigner requires a non-empty secret")
        now = int(time.time())
        payload = dict(claims)
        payload.setdefault("jti", uuid.uuid4().hex)
        payload["iat"] = now
        payload["exp"] = now + int(ttl_seconds)
        if self.issuer:
            payload["iss"] = self.issuer
        if self.audience:
            payload["aud"] = self.audience
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def verify(self, token: str, secret: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                leeway=self.leeway_seconds,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise VerificationError("Token expired", code=AuthErrorCodes.TOKEN_EXPIRED)
        except jwt.PyJWTError as ex:
            raise VerificationError(f"Invalid token: {ex}")


class BcryptPasswordHasher(PasswordHasherPort):
    """bcrypt via passlib. Cost factor is the bcrypt log2 rounds."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds
        self._ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self._ctx.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            return False
        try:
            return self._ctx.verify(password, password_hash)
        except (ValueError, TypeError):
            # unrecognised or corrupt hash
            return False
