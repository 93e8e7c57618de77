from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment-based configuration"""

    # Application
    app_name: str = "TicketBridge"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Product identity used in user agents, external ids and message footers
    product_name: str = "TicketBridge"
    public_base_url: str = "https://app.ticketbridge.io"
    facade_email_domain: str = "users.ticketbridge.io"

    # API
    api_v1_prefix: str = "/api/v1"
    secret_key: str = "your-secret-key-change-in-production"

    # Database
    database_url: Optional[str] = None

    # SQLite for development
    sqlite_db_name: str = "ticketbridge.db"

    # PostgreSQL for production
    postgres_server: Optional[str] = None
    postgres_user: Optional[str] = None
    postgres_password: Optional[str] = None
    postgres_db: Optional[str] = None
    postgres_port: int = 5432

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # Zendesk sync
    zendesk_webhook_token: Optional[str] = None
    comment_page_size: int = 100
    lock_timeout_seconds: int = 10
    import_retry_countdown: int = 15
    import_max_retries: int = 5

    # Logging
    log_level: str = "INFO"

    @property
    def database_url_complete(self) -> str:
        """Get complete database URL based on environment"""
        if self.database_url:
            return self.database_url

        if self.environment == "production" and all(
            [
                self.postgres_server,
                self.postgres_user,
                self.postgres_password,
                self.postgres_db,
            ]
        ):
            return f"postgresql://{self.postgres_user}:{self.postgres_password}@{self.postgres_server}:{self.postgres_port}/{self.postgres_db}"

        # Default to SQLite for development
        return f"sqlite:///./{self.sqlite_db_name}"

    @property
    def user_agent(self) -> str:
        return f"{self.product_name}/{self.app_version}"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_parse_none_str="None"
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
