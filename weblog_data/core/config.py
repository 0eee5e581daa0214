from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Storage backend: "relational", "hybrid" or "document"
    DATA_BACKEND: str = "relational"

    # SQL (relational and hybrid adapters)
    DATABASE_URL: Optional[str] = None
    DB_FILE: str = "./weblog.db"
    SQL_ECHO: bool = False

    # MongoDB (document adapter)
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "weblog"

    # Retry policy for transient store failures
    RETRY_MAX_ATTEMPTS: int = 5
    RETRY_MIN_WAIT_SECONDS: float = 0.5
    RETRY_MAX_WAIT_SECONDS: float = 10.0

    # Bulk restore batching
    RESTORE_BATCH_SIZE: int = 100
    UPLOAD_RESTORE_BATCH_SIZE: int = 5  # Uploads carry binary payloads

    # Admin page list
    PAGES_PER_ADMIN_PAGE: int = 25

    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite+aiosqlite:///{self.DB_FILE}"

    class Config:
        env_file = ".env"
        extra = "ignore"  # Allow extra fields in .env file


settings = Settings()
