import os
import tempfile
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./sweetshop.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    ACCESS_TOKEN_SECRET: str = "change-this-access-secret"
    REFRESH_TOKEN_SECRET: str = "change-this-refresh-secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12
    FRONTEND_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    COOKIE_SECURE: bool = False
    STOCK_LOCKS_DIR: str = os.path.join(tempfile.gettempdir(), "sweetshop_locks")
    STOCK_LOCK_TIMEOUT_SECONDS: float = 10.0
    ORDER_PRICE_CHECK: bool = False
    LOG_LEVEL: str = "INFO"
    # per client address; "<count> per <n> <unit>"
    RATE_LIMIT_ENABLED: bool = True
    REGISTER_RATE_LIMIT: str = "3 per hour"
    LOGIN_RATE_LIMIT: str = "5 per 15 minutes"
    REFRESH_RATE_LIMIT: str = "10 per minute"
    SECURITY_RATE_LIMIT: str = "5 per 15 minutes"
    RESET_DB: bool = False
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
