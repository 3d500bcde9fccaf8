import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Project Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("SOUNDSHELF_DATA_DIR", str(BASE_DIR / "data"))
    )

    # Database
    DB_NAME: str = "soundshelf.db"
    DATABASE_URL: Optional[str] = None  # Overrides the SQLite file when set

    @property
    def DB_PATH(self) -> Path:
        return self.DATA_DIR / self.DB_NAME

    @property
    def DB_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        # Use forward slashes so Windows paths work in the URL (no backslash escapes)
        path = self.DB_PATH.resolve().as_posix()
        return f"sqlite+aiosqlite:///{path}"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_RETENTION: str = "10 days"
    LOG_ROTATION: str = "10 MB"

    # Performance & Debugging
    DB_ECHO: bool = False  # Enable SQLAlchemy query logging

    # Library & API
    MUSIC_PATH: str = "/mnt/music"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 4000

    # Scan defaults (see ScanConfig.from_settings)
    SCAN_BATCH_SIZE: int = 100
    SCAN_PATH_BATCH_SIZE: int = 1000
    SCAN_OPTIMIZED: bool = True
    SCAN_SHOW_PROGRESS: bool = True
    SCAN_WRITE_RETRIES: int = 3
    SCAN_RETRY_BACKOFF: float = 0.5  # seconds, doubled per attempt
    SCAN_MAX_CONCURRENT_EXTRACTIONS: int = 8


settings = Settings()

# Ensure data directory exists
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
