"""
Configuration settings for the Chess Presenter application, powered by Pydantic.

This module centralizes all tunable parameters and default values. Using
Pydantic allows for type-safe, self-documenting configuration that can be
loaded from environment variables, keeping the shared-storage location and the
replication cadence out of the code.
"""
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseModel):
    """Where the shared key-value area both display surfaces read and write lives."""
    db_filepath: str = Field("data/shared_state.db", description="The file path of the SQLite database backing the shared key-value area.")
    connect_timeout_s: float = Field(10.0, description="How long SQLite waits on a locked database before raising.")


class ReplicationSettings(BaseModel):
    """
    Controls how the presenter surface converges on the viewer's state.

    Polling is the reliability backstop and always runs; file-change
    notifications are a faster, best-effort path on top of it.
    """
    poll_interval_ms: int = Field(200, gt=0, description="Fixed interval at which a subscription re-reads the viewer state key.")
    notifications_enabled: bool = Field(True, description="Whether subscriptions also listen for storage file change notifications.")
    watcher_debounce_ms: int = Field(200, gt=0, description="Maximum time the file watcher groups changes before notifying.")
    watcher_normal_sleep_ms: int = Field(100, gt=0, description="Sleep between file watcher checks while nothing changes.")
    watcher_min_sleep_ms: int = Field(50, gt=0, description="Minimum sleep between file watcher checks.")

    @model_validator(mode='after')
    def validate_watcher_sleeps(self) -> 'ReplicationSettings':
        """Ensures the watcher's minimum sleep does not exceed its normal sleep."""
        if self.watcher_min_sleep_ms > self.watcher_normal_sleep_ms:
            raise ValueError("Configuration error: watcher_min_sleep_ms must not exceed watcher_normal_sleep_ms.")
        return self

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000.0


# --- Main Application Settings Class ---

class Settings(BaseSettings):
    """
    Main configuration class for the application.

    It loads settings from environment variables with the prefix 'CHESS_PRESENTER_'.
    Nested models can be configured using a double underscore delimiter, e.g.,
    `CHESS_PRESENTER_REPLICATION__POLL_INTERVAL_MS=100`.
    """
    model_config = SettingsConfigDict(env_prefix='CHESS_PRESENTER_', env_nested_delimiter='__')

    storage: StorageSettings = Field(default_factory=StorageSettings)
    replication: ReplicationSettings = Field(default_factory=ReplicationSettings)
    default_log_level: str = "INFO"
    log_file: str | None = None


# A singleton instance of the settings, accessible throughout the application.
settings = Settings()
