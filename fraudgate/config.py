from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./fraudgate.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    LOG_LEVEL: str = "INFO"

    # snapshot building / delivery
    SNAPSHOT_MAX_RULES: int = 5000
    SNAPSHOT_REFRESH_SECONDS: int = 300
    SNAPSHOT_KEY_PREFIX: str = "fraudgate:snapshot"

    # match counter reconciliation
    RECONCILE_MAX_RETRIES: int = 5
    RECONCILE_BACKOFF_MAX_SECONDS: int = 60

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
