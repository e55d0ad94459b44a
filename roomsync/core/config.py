"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator, field_validator
from typing import Optional


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class Settings(BaseSettings):
    """Shard process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Durable store (unset disables loading, saving and subscriber sync)
    database_url: Optional[str] = None

    # Redis for TTL locks and counters (unset disables lock renewal/metering)
    redis_url: Optional[str] = None

    # Sharding: shard is 1-based, unset means a single unsharded process
    shard: Optional[int] = None
    shard_count: int = 1

    # vBrowser release sweep
    release_interval_seconds: int = 300
    release_batches: int = 10
    empty_idle_seconds: int = 300
    vbrowser_session_seconds: int = 3 * 60 * 60
    vbrowser_session_seconds_large: int = 12 * 60 * 60

    # TTL locks
    vbrowser_lock_ttl_seconds: int = 300
    uid_lock_ttl_seconds: int = 120
    lock_renew_interval_seconds: int = 60

    # Loop cadence (seconds)
    save_interval_seconds: float = 1.0
    reclaim_interval_seconds: int = 300

    # Subscriber sync
    subscriber_sync_interval_seconds: int = 60
    subscriber_batch_size: int = 50
    stripe_secret_key: Optional[str] = None
    firebase_project_id: Optional[str] = None
    firebase_access_token: Optional[str] = None

    # VM worker (session provider) runs beside each shard
    vmworker_port: int = 3100

    # API
    backend_port: int = 8080
    stats_key: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @property
    def release_sweep_seconds(self) -> float:
        """Interval between release sweeps (one batch per sweep)."""
        return self.release_interval_seconds / self.release_batches

    @property
    def subscriber_sync_enabled(self) -> bool:
        """Subscriber sync needs billing and identity credentials."""
        return bool(self.stripe_secret_key and self.firebase_project_id and self.firebase_access_token)

    def session_limit_seconds(self, large: bool) -> int:
        """Maximum vBrowser session length for a capacity tier."""
        return self.vbrowser_session_seconds_large if large else self.vbrowser_session_seconds

    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Validate configuration after all fields are set."""
        if self.shard_count < 1:
            raise ValueError("shard_count must be at least 1")
        if self.shard is not None and not 1 <= self.shard <= self.shard_count:
            raise ValueError(f"shard must be between 1 and {self.shard_count}, got {self.shard}")
        if self.release_batches < 1:
            raise ValueError("release_batches must be at least 1")
        # Locks must be renewed before an external reaper can see them expire
        for name in ("vbrowser_lock_ttl_seconds", "uid_lock_ttl_seconds"):
            ttl = getattr(self, name)
            if self.lock_renew_interval_seconds >= ttl:
                raise ValueError(
                    f"lock_renew_interval_seconds ({self.lock_renew_interval_seconds}) "
                    f"must be less than {name} ({ttl})"
                )
        return self


# Global settings instance
settings = Settings()
