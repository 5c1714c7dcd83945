from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sweetshop.db import SessionLocal
from sweetshop.models.user import User, UserRole
from sweetshop.utils.security import JWTError, decode_access_token

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    email: str
    role: str
    token_version: int

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def _unauthorized(detail: str, code: Optional[str] = None) -> HTTPException:
    body = {"message": detail}
    if code:
        body["code"] = code
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED, detail=body, headers={"WWW-Authenticate": "Bearer"}
    )


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("No access token provided")
    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise _unauthorized("Access token expired or invalid", code="TOKEN_EXPIRED")

    # short-lived session so the request's own session starts clean for the service call
    with SessionLocal() as s:
        user = s.get(User, user_id)
        if not user or user.token_version != payload.get("tv"):
            raise _unauthorized("Invalid or expired token")
        return CurrentUser(id=user.id, email=user.email, role=user.role, token_version=user.token_version)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"message": "Forbidden"})
    return user
