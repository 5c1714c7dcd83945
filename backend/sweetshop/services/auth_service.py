import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from sweetshop.models.user import User, UserRole
from sweetshop.utils.security import (
    JWTError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from sweetshop.utils.transactions import smart_transaction

log = logging.getLogger(__name__)


class AuthException(Exception):
    pass


class UserAlreadyExists(AuthException):
    pass


class InvalidCredentials(AuthException):
    pass


class InvalidRefreshToken(AuthException):
    pass


class TokenRevoked(AuthException):
    pass


class UserNotFound(AuthException):
    pass


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str


class AuthService:
    """
    Issues short-lived access tokens and rotating refresh tokens.

    Every token carries the user's ``token_version`` at issuance. Bumping the
    stored counter revokes all outstanding refresh tokens at once, and the
    single stored ``refresh_token`` makes each refresh token usable until the
    next rotation only.
    """

    def __init__(self, db: Session):
        self.db = db

    def _issue(self, user: User) -> AuthResult:
        access = create_access_token(user.id, user.role, user.email, user.token_version)
        refresh = create_refresh_token(user.id, user.role, user.email, user.token_version)
        user.refresh_token = refresh
        self.db.flush()
        return AuthResult(user=user, access_token=access, refresh_token=refresh)

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthResult:
        email = email.strip().lower()
        with smart_transaction(self.db):
            if self.db.query(User).filter(User.email == email).first():
                raise UserAlreadyExists("User already exists")
            user = User(
                email=email, name=name, password=hash_password(password), role=UserRole.USER.value, token_version=0
            )
            self.db.add(user)
            self.db.flush()
            result = self._issue(user)
        log.info("Registered user id=%s", user.id)
        return result

    def login(self, email: str, password: str) -> AuthResult:
        email = email.strip().lower()
        with smart_transaction(self.db):
            user = self.db.query(User).filter(User.email == email).first()
            if not user or not verify_password(password, user.password):
                raise InvalidCredentials("Invalid credentials")
            result = self._issue(user)
        log.info("User id=%s logged in", user.id)
        return result

    def refresh(self, token: str) -> AuthResult:
        try:
            payload = decode_refresh_token(token)
            user_id = int(payload["sub"])
        except (JWTError, KeyError, ValueError):
            raise InvalidRefreshToken("Invalid refresh token")

        with smart_transaction(self.db):
            user = self.db.query(User).filter(User.id == user_id).with_for_update().first()
            if not user:
                raise UserNotFound("User not found")
            if user.token_version != payload.get("tv"):
                raise TokenRevoked("Token has been revoked")
            if user.refresh_token != token:
                raise InvalidRefreshToken("Invalid refresh token")
            result = self._issue(user)
        log.debug("Rotated refresh token for user id=%s", user.id)
        return result

    def revoke_refresh_tokens(self, user_id: int) -> int:
        """Invalidate every refresh token of the user. Returns the new token version."""
        with smart_transaction(self.db):
            changed = self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(token_version=User.token_version + 1, refresh_token=None)
                .execution_options(synchronize_session="fetch")
            ).rowcount
            if not changed:
                raise UserNotFound("User not found")
            version = self.db.query(User.token_version).filter(User.id == user_id).scalar()
        log.info("Revoked refresh tokens for user id=%s (token_version=%s)", user_id, version)
        return version

    def ensure_admin(self, email: str, password: str) -> User:
        email = email.strip().lower()
        with smart_transaction(self.db):
            user = self.db.query(User).filter(User.email == email).first()
            if user:
                if user.role != UserRole.ADMIN.value:
                    user.role = UserRole.ADMIN.value
            else:
                user = User(email=email, name="Admin User", password=hash_password(password), role=UserRole.ADMIN.value)
                self.db.add(user)
            self.db.flush()
        log.info("Admin account ready: %s", email)
        return user
