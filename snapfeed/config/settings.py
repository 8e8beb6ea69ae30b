from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # anon key; each client session signs in on its own client

    # Tables / storage
    profiles_table: str = "profiles"
    posts_table: str = "posts"
    media_bucket: str = "post-media"

    # Profile defaults
    default_username_prefix: str = "user_"
    default_avatar_url_template: str = "https://api.dicebear.com/7.x/avataaars/svg?seed={user_id}"
    bio_max_length: int = 150
    username_min_length: int = 3
    avatar_max_bytes: int = 5 * 1024 * 1024

    # Session orchestration
    profile_retry_attempts: int = 3
    profile_retry_backoff_seconds: float = 0.5
    view_settle_timeout_seconds: float = 5.0
    session_idle_timeout_seconds: int = 1800
    session_sweep_interval_seconds: int = 60

    # App
    app_name: str = "snapfeed"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    auth_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
