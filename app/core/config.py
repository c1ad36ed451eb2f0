from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Renaissance Identity"
    # Application settings
    PORT: int = 8000
    HOST: str = "127.0.0.1"
    VERSION: str = "0.1.0"
    DOC_PASSWORD: str | None = None
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # SSL settings
    SSL_KEY: str | None = None
    SSL_CERT: str | None = None

    # SQLAlchemy database URL
    DATABASE_URL: str = "sqlite:///./identity.db"
    DATABASE_AUTO_CREATE: bool = False

    # Identity authority (registration, OTP)
    IDENTITY_API_URL: str = "https://api.renaissance.city"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Session cookie
    SESSION_COOKIE_NAME: str = "user_session"
    SESSION_MAX_AGE_SECONDS: int = 86400  # 24 hours
    SESSION_COOKIE_SECURE: bool = False

    # Directory service (People API), sync is skipped when unset
    PEOPLE_API_URL: str | None = None
    PEOPLE_API_KEY: str | None = None
    DIRECTORY_SYNC_MAX_ATTEMPTS: int = 3
    DIRECTORY_SYNC_BACKOFF_SECONDS: float = 0.5

    # DigitalOcean Spaces (S3 compatible) for profile pictures
    SPACES_ENDPOINT: str | None = None  # e.g. https://nyc3.digitaloceanspaces.com
    SPACES_ACCESS_KEY_ID: str | None = None
    SPACES_SECRET_ACCESS_KEY: str | None = None
    SPACES_BUCKET_NAME: str | None = None
    SPACES_REGION: str = "nyc3"
    SPACES_CDN_URL: str | None = None
    PROFILE_IMAGE_MAX_BYTES: int = 5 * 1024 * 1024  # 5MB

    # Embedded wallet
    WALLET_STORE_PATH: str = "~/.renaissance/wallet.json"
    WALLET_STORAGE_KEY: str = "renaissance_embedded_wallet"
    WALLET_ENCRYPTION_KEY: str | None = None  # Fernet key, plaintext at rest when unset

    # Debug settings
    DEBUG: bool = False

    class Config:
        env_file = ".env"

# Instantiate the settings
settings = Settings()
