from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import Optional

load_dotenv()

class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 20

    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Redis settings
    REDIS_URL: str
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Session cookie that carries the Google sign-in state
    COOKIE_SECURE: bool = True  # set False for local http

    MAX_CONCURRENT_REFRESHES: int = 3

    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    PROJECT_NAME: str = "Haworth Carpool API"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Community carpool coordination for parents and kids"

    LOG_LEVEL: str = "INFO"

    PASSWORD_MIN_LENGTH: int = 6

    # Rides whose date is this many hours in the past drop out of the feeds
    RIDE_STALE_AFTER_HOURS: int = 24
    POI_CACHE_TTL_SECONDS: int = 1800

    # Registered user promoted to an approved admin by init_db
    BOOTSTRAP_ADMIN_EMAIL: Optional[str] = None

    class Config:
        env_file = ".env"


settings = Settings()
