from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import os


BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    APP_NAME: str = "FlowDash"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = f"sqlite:///{os.path.join(BACKEND_DIR, 'data', 'flowdash.db')}"

    # Session tokens are always RS256; keys come from env (PEM, possibly flattened) or files
    JWT_ALGORITHM: str = "RS256"
    JWT_PRIVATE_KEY: Optional[str] = None
    JWT_PUBLIC_KEY: Optional[str] = None
    JWT_PRIVATE_KEY_PATH: str = "private-key.pem"
    JWT_PUBLIC_KEY_PATH: str = "public-key.pem"
    SESSION_EXPIRE_DAYS: int = 1
    REMEMBER_ME_EXPIRE_DAYS: int = 30
    SESSION_COOKIE_NAME: str = "token"

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    IMAGE_MAX_DIMENSION: int = 500
    IMAGE_QUALITY: int = 80
    IMAGE_MAX_PIXELS: int = 40_000_000  # larger inputs are refused before decoding
    ENABLE_IMAGE_DEDUPLICATION: bool = True

    LOGIN_RATE_LIMIT: int = 10
    LOGIN_RATE_WINDOW_SECONDS: int = 60
    # Peers whose X-Forwarded-For header is believed; everyone else is keyed by socket address
    TRUSTED_PROXIES: List[str] = []

    LOG_DIR: str = "logs"

    HOST: str = "127.0.0.1"
    PORT: int = 8000

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def UPLOAD_DIR_ABS(self) -> str:
        """Get absolute path for upload directory."""
        if os.path.isabs(self.UPLOAD_DIR):
            return self.UPLOAD_DIR
        return os.path.join(BACKEND_DIR, self.UPLOAD_DIR)

    def resolve_path(self, path: str) -> str:
        """Resolve a path relative to the backend directory, not the current working directory."""
        if os.path.isabs(path):
            return path
        return os.path.join(BACKEND_DIR, path)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"  # Ignore extra environment variables
    )


settings = Settings()
