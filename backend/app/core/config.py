from pydantic_settings import BaseSettings
from typing import List, Any, Optional
import json
from pathlib import Path


def parse_csv_list(v: Any) -> List[str]:
    """Parse a list setting from a JSON array or comma-separated string"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [item.strip() for item in v.split(',') if item.strip()]
    return []


DEFAULT_ALLOWED_CONTENT_TYPES = ",".join([
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    # Images
    "image/jpeg",
    "image/png",
    # Audio
    "audio/mpeg",
    "audio/wav",
    "audio/ogg",
    "audio/aac",
    "audio/webm",
    "audio/mp4",
    "audio/x-m4a",
    "audio/flac",
    "audio/x-ms-wma",
])


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Faculty Portfolio"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./portfolio.db"
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60  # 1 hour
    BCRYPT_ROUNDS: int = 12  # 4 for dev (fast), 12 for prod (secure)

    # ==========================================
    # One-time passwords
    # ==========================================
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_TIMEOUT: int = 30
    EMAIL_FROM: str = "noreply@portfolio.local"
    EMAIL_FROM_NAME: str = "Faculty Portfolio"

    # ==========================================
    # Storage Configuration
    # ==========================================
    STORAGE_MODE: str = "local"  # "local" or "s3"
    UPLOAD_PATH: str = "uploads"

    # AWS S3 / MinIO
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET_NAME: str = "faculty-portfolio"
    S3_ENDPOINT_URL: Optional[str] = None  # Set for MinIO, e.g. http://localhost:9000
    S3_KEY_PREFIX: str = "uploads"

    # ==========================================
    # File Upload
    # ==========================================
    MAX_FILES_PER_REQUEST: int = 5
    MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_CONTENT_TYPES_STR: str = DEFAULT_ALLOWED_CONTENT_TYPES

    @property
    def ALLOWED_CONTENT_TYPES(self) -> List[str]:
        """Parse allowed upload content types from comma-separated string"""
        return parse_csv_list(self.ALLOWED_CONTENT_TYPES_STR)

    @property
    def MAX_REQUEST_SIZE(self) -> int:
        """Largest multipart body accepted: a full batch of files plus form overhead"""
        return self.MAX_FILES_PER_REQUEST * self.MAX_FILE_SIZE_BYTES + 1024 * 1024

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_csv_list(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_STORAGE_URI: str = "memory://"  # e.g. redis://localhost:6379/0

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Relative upload paths resolve against backend/
        base_dir = Path(__file__).resolve().parent.parent.parent
        upload_dir = Path(self.UPLOAD_PATH)
        if not upload_dir.is_absolute():
            upload_dir = base_dir / upload_dir
        self._upload_dir = upload_dir

    @property
    def UPLOAD_DIR(self) -> Path:
        return self._upload_dir


# Create settings instance
settings = Settings()
