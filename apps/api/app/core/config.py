from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    auth_mode: str = "none"  # none | forwardauth
    dev_user_email: str = "dev@example.com"
    internal_admin_token: str = "change-me"
    root_path: str = ""
    log_level: str = "INFO"

    postgres_db: str = "family_finance"
    postgres_user: str = "finance_user"
    postgres_password: str = "finance_pass"
    postgres_host: str = "db"
    postgres_port: int = 5432
    db_statement_timeout_ms: int = 5000
    redis_host: str = "redis"
    redis_port: int = 6379

    # Budgets
    default_currency: str = "VND"
    default_alert_threshold: int = 80

    # Invitations
    invitation_ttl_days: int = 7

    # Notification delivery (empty webhook url = log only)
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = 5.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
