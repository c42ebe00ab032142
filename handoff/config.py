"""
Configuration management for Handoff
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Handoff Client Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./handoff.db"

    # Security
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours
    SESSION_COOKIE_NAME: str = "handoff_session"
    SESSION_COOKIE_SECURE: bool = False

    # Object storage
    STORAGE_DIR: str = "uploads"
    STORAGE_PUBLIC_URL: str = "/api/storage"
    MAX_UPLOAD_SIZE_MB: int = 20
    SIGNED_URL_EXPIRE_SECONDS: int = 60

    # Demo accounts used by seed / diagnostic / login-as-designer routes
    DEMO_DESIGNER_ID: Optional[str] = None
    DEMO_CLIENT_ID: Optional[str] = None
    DEMO_PROJECT_ID: Optional[str] = None
    SEED_ROUTES_ENABLED: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Settings read once from the environment at process start"""
    return Settings()
