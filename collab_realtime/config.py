"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings (read-only access for membership lookups)
    db_server: str = "localhost"
    db_name: str = "collab"
    db_user: str = "collab"
    db_password: str = ""
    db_port: int = 5432
    db_pool_size: int = 10
    db_max_overflow: int = 20
    sql_echo: bool = False

    # JWT settings (shared with the REST layer)
    jwt_secret: str = "your_jwt_secret"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 10080

    # WebSocket settings
    ws_ping_interval: float = 25.0  # Server ping every 25s
    ws_ping_timeout: float = 60.0  # Dead after interval + timeout of silence
    ws_max_message_size: int = 65536  # 64KB max frame size

    # Redis settings (cross-worker fan-out; empty url = single-worker mode)
    redis_url: str = ""
    redis_max_connections: int = 50
    redis_socket_timeout: float = 5.0
    redis_required: bool = False

    # Server settings
    frontend_url: str = "*"
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        """Build PostgreSQL async connection string."""
        from urllib.parse import quote_plus
        return (
            f"postgresql+asyncpg://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )

    @property
    def receive_timeout(self) -> float:
        """Seconds of client silence after which a connection is considered dead."""
        return self.ws_ping_interval + self.ws_ping_timeout


# Global settings instance
settings = Settings()
