from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "TASKLEDGER"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = ""
    LOG_JSON: bool = False
    SQL_ECHO: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./taskledger.db"

    # Storage behaviour
    SEED_DEFAULT_SETTINGS: bool = True
    HISTORY_SCAN_BATCH_SIZE: int = 500

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 60

    class Config:
        # Search .env in current dir AND backend/ dir
        env_file = (".env", "backend/.env", "../.env")
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
