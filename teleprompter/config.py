"""
Teleprompter Configuration
Manages environment variables and application settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Remote data API (REST CRUD endpoint holding scripts, alternatives, submissions, history)
    data_api_url: str = Field(default="", alias="DATA_API_URL")
    data_api_timeout: float = Field(default=10.0, alias="DATA_API_TIMEOUT")
    table_prefix: str = Field(default="tmdebt_", alias="TABLE_PREFIX")

    # Application
    app_name: str = "Teleprompter"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Script rendering
    reference_timezone: str = Field(default="America/Los_Angeles", alias="REFERENCE_TIMEZONE")

    # Roles
    admin_sentinel: str = Field(default="000", alias="ADMIN_SENTINEL")
    manager_sentinel: str = Field(default="021", alias="MANAGER_SENTINEL")
    role_cache_ttl: float = Field(default=60.0, alias="ROLE_CACHE_TTL")

    # Selection persistence timing (seconds)
    correction_debounce: float = Field(default=0.5, alias="CORRECTION_DEBOUNCE")
    cycle_guard_timeout: float = Field(default=2.0, alias="CYCLE_GUARD_TIMEOUT")
    history_lookback: int = Field(default=50, alias="HISTORY_LOOKBACK")
    # Sessions untouched this long are closed; 0 keeps them until removed
    session_idle_timeout: float = Field(default=1800.0, alias="SESSION_IDLE_TIMEOUT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True


# Global settings instance
settings = Settings()
