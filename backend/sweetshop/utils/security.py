from datetime import datetime, timedelta, timezone
from typing import Dict
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from sweetshop.config import settings

__all__ = [
    "JWTError",
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_access_token",
    "decode_refresh_token",
]

_pwd_ctx = None


def _context() -> CryptContext:
    global _pwd_ctx
    if _pwd_ctx is None:
        _pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)
    return _pwd_ctx


def hash_password(password: str) -> str:
    return _context().hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return _context().verify(plain, hashed)


def _claims(user_id: int, role: str, email: str, token_version: int, expires: timedelta, kind: str) -> Dict:
    now = datetime.now(timezone.utc)
    return {
        "sub": str(user_id),
        "role": role,
        "email": email,
        "tv": token_version,
        "typ": kind,
        "iat": now,
        "exp": now + expires,
    }


def create_access_token(user_id: int, role: str, email: str, token_version: int) -> str:
    claims = _claims(
        user_id, role, email, token_version, timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES), "access"
    )
    return jwt.encode(claims, settings.ACCESS_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(user_id: int, role: str, email: str, token_version: int) -> str:
    claims = _claims(user_id, role, email, token_version, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS), "refresh")
    # two refresh tokens minted in the same second must still differ for rotation checks
    claims["jti"] = uuid4().hex
    return jwt.encode(claims, settings.REFRESH_TOKEN_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict:
    payload = jwt.decode(token, settings.ACCESS_TOKEN_SECRET, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("typ") != "access":
        raise JWTError("Not an access token")
    return payload


def decode_refresh_token(token: str) -> Dict:
    payload = jwt.decode(token, settings.REFRESH_TOKEN_SECRET, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("typ") != "refresh":
        raise JWTError("Not a refresh token")
    return payload
