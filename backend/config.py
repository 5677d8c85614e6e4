# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, List
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    DATABASE_URL: str = "sqlite:///./cpr_training.db"

    FRONTEND_URL: str = "http://localhost:5173"
    EXTRA_CORS_ORIGINS: List[str] = []

    LOG_LEVEL: str = "INFO"

    # File storage for generated invoices and vendor uploads
    INVOICE_STORAGE_DIR: str = "storage/invoices"
    UPLOAD_DIR: str = "storage/vendor_invoices"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # Seconds a system configuration value stays cached
    CONFIG_CACHE_TTL: int = 300

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
