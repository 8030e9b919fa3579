from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    MLSHUB_DB_URL: str = "sqlite+aiosqlite:///./mlshub.db"
    LOG_LEVEL: str = "INFO"

    # --- Admin auth (API key) ---
    # Send: X-API-Key: <key>
    ADMIN_API_KEY: str | None = None

    # --- Primary listings provider (Repliers) ---
    REPLIERS_API_KEY: str | None = None
    REPLIERS_ENDPOINT: str = "https://api.repliers.ca/v1"
    REPLIERS_REGION: str = "GTA"
    REPLIERS_RATE_LIMIT: int = 100  # requests per minute
    REPLIERS_TIMEOUT_MS: int = 30000

    # --- Bring-your-own providers ---
    CUSTOM_PROVIDER_DEFAULT_RPM: int = 60
    CUSTOM_PROVIDER_DEFAULT_TIMEOUT_MS: int = 30000

    HTTP_USER_AGENT: str = "AgentRadar-MLS-Integration/1.0"

    # --- Cache ---
    CACHE_BACKEND: str = "memory"  # memory|sql

    # --- Scheduler tuning ---
    # Custom providers report unhealthy 5 minutes after their last good probe,
    # so the recheck interval must stay below that.
    HEALTH_SCHEDULER_ENABLED: bool = False
    HEALTH_RECHECK_INTERVAL_MINUTES: int = 4
    CACHE_PURGE_INTERVAL_MINUTES: int = 60


settings = Settings()
