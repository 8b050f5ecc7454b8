"""Application settings"""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Settings read from environment variables and .env"""

    # Database
    database_url: str = "sqlite+aiosqlite:///./bookswap.db"

    # Sessions
    session_secret_key: str = "change-me-in-production"
    session_cookie: str = "bookswap_session"

    # UI strings
    site_name: str = "BookSwap"
    university_name: str = "Example University"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_file_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 5

    # Amazon price refresh
    amazon_refresh_hours: int = 24
    amazon_batch_size: int = 10

    # Web server
    host: str = "127.0.0.1"
    port: int = 8000

    template_dir: Path = BASE_DIR / "templates"
    static_dir: Path = BASE_DIR / "static"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def ui_strings(self) -> dict:
        return {
            "site_name": self.site_name,
            "university_name": self.university_name,
        }


settings = Settings()
