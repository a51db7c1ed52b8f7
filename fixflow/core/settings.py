
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal

# Common Config for all settings classes to pick up .env
settings_config = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore"
)

class FlowSettings(BaseSettings):
    ttl_minutes: float = Field(30, alias="FLOW_TTL_MINUTES")
    store_backend: Literal["memory", "database", "redis"] = Field("memory", alias="FLOW_STORE_BACKEND")
    strict_validation: bool = Field(False, alias="FLOW_STRICT_VALIDATION")
    max_conflict_retries: int = Field(3, alias="FLOW_MAX_CONFLICT_RETRIES")
    redis_key_prefix: str = Field("fixflow:flow:", alias="FLOW_REDIS_KEY_PREFIX")

    model_config = settings_config

class DatabaseSettings(BaseSettings):
    url: str = Field("sqlite+aiosqlite:///./fixflow.db", alias="DATABASE_URL")
    pool_size: int = Field(5, alias="DB_POOL_SIZE")
    max_overflow: int = Field(10, alias="DB_MAX_OVERFLOW")

    model_config = settings_config

class RedisSettings(BaseSettings):
    url: str = Field("redis://redis:6379", alias="REDIS_URL")

    model_config = settings_config

class AppSettings(BaseSettings):
    env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Using default_factory with BaseSettings classes will trigger their own env loading
    flow: FlowSettings = Field(default_factory=FlowSettings)
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    model_config = settings_config

settings = AppSettings()
