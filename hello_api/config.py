from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    hello_db_url: str = "sqlite+aiosqlite:///data/hello.db"

    # Logging
    hello_log_level: str = "info"

    # CORS
    hello_cors_origins: str = "http://localhost:3000"

    # Response envelope
    hello_api_version: str = "v1.0"

    # Monitoring
    hello_request_log_capacity: int = 1000
    hello_recent_window_minutes: int = 10

    # Pagination
    hello_default_page_size: int = 10
    hello_max_page_size: int = 100

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
