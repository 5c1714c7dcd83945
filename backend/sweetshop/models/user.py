import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from sweetshop.db import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    password = Column(String(255), nullable=False)  # bcrypt hash
    role = Column(String(16), nullable=False, default=UserRole.USER.value)
    # bumped to invalidate every outstanding refresh token
    token_version = Column(Integer, nullable=False, default=0)
    refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role}>"
