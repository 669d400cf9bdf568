import os
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    ENV: str = os.getenv("ENV", "development")  # development, staging, production
    DEBUG: bool = ENV in ["development", "staging"]

    # Database settings
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "backoffice")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "backoffice")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "backoffice")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    DATABASE_URL: str = os.getenv("DATABASE_URL", f"postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}")

    # Database connection pool settings
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "20"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", "3600"))

    # Redis settings
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    USE_REDIS: bool = os.getenv("USE_REDIS", "0") == "1"
    CACHE_KEY_PREFIX: str = os.getenv("CACHE_KEY_PREFIX", "backoffice")

    # Cache TTLs (seconds)
    PERMISSION_CACHE_TTL: int = int(os.getenv("PERMISSION_CACHE_TTL", str(60 * 60 * 24)))
    GROUP_PERMISSION_CACHE_TTL: int = int(os.getenv("GROUP_PERMISSION_CACHE_TTL", "3600"))
    MENU_CACHE_TTL: int = int(os.getenv("MENU_CACHE_TTL", "3600"))
    SETTINGS_CACHE_TTL: int = int(os.getenv("SETTINGS_CACHE_TTL", "3600"))

    # Groups
    GROUPS_LARGE_GROUP_THRESHOLD: int = int(os.getenv("GROUPS_LARGE_GROUP_THRESHOLD", "100"))
    GROUPS_MEMBER_DATA_CHUNK_SIZE: int = int(os.getenv("GROUPS_MEMBER_DATA_CHUNK_SIZE", "1000"))
    GROUPS_MEMBERS_PER_PAGE: int = int(os.getenv("GROUPS_MEMBERS_PER_PAGE", "10"))
    GROUPS_AVAILABLE_USERS_PER_PAGE: int = int(os.getenv("GROUPS_AVAILABLE_USERS_PER_PAGE", "20"))

    # Audit log delivery
    AUDIT_QUEUE_ENABLED: bool = os.getenv("AUDIT_QUEUE_ENABLED", "true").lower() == "true"
    AUDIT_QUEUE_WORKERS: int = int(os.getenv("AUDIT_QUEUE_WORKERS", "2"))
    AUDIT_MAX_ATTEMPTS: int = int(os.getenv("AUDIT_MAX_ATTEMPTS", "3"))
    AUDIT_RETRY_DELAY: float = float(os.getenv("AUDIT_RETRY_DELAY", "0.5"))
    AUDITLOG_RETENTION_DAYS: int = int(os.getenv("AUDITLOG_RETENTION_DAYS", "90"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API specific settings
    API_PREFIX: str = "/api/v1"
    APP_NAME: str = "Back Office"
    APP_VERSION: str = "1.0.0"

    class Config:
        case_sensitive = True
        env_file = None

settings = Settings()
