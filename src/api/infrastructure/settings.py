"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared_kernel.outbox.value_objects import DeadLetterPolicy, RetryBackoff


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        COURIER_DB_HOST: Database host (default: localhost)
        COURIER_DB_PORT: Database port (default: 5432)
        COURIER_DB_DATABASE: Database name (default: courier)
        COURIER_DB_USERNAME: Database user (default: courier)
        COURIER_DB_PASSWORD: Database password (required in production)
        COURIER_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 2)
        COURIER_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
        COURIER_DB_ECHO: Log SQL statements (default: false)
    """

    model_config = SettingsConfigDict(
        env_prefix="COURIER_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="courier", description="Database name")
    username: str = Field(default="courier", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_min_connections: int = Field(
        default=2,
        description="Minimum connections in pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )
    echo: bool = Field(default=False, description="Log SQL statements")

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class OutboxSettings(BaseSettings):
    """Outbox publisher settings.

    Environment variables:
        COURIER_OUTBOX_ENABLED: Run the publisher in this process (default: true)
        COURIER_OUTBOX_POLL_INTERVAL_SECONDS: Time between polls (default: 30)
        COURIER_OUTBOX_BATCH_SIZE: Records per poll (default: 100)
        COURIER_OUTBOX_MAX_RETRIES: Failed attempts before dead-lettering (default: 5)
        COURIER_OUTBOX_DEAD_LETTER_POLICY: move or delete (default: move)
        COURIER_OUTBOX_PROCESSED_RETENTION_DAYS: Keep processed rows (default: 7)
        COURIER_OUTBOX_NOTIFY_ENABLED: Wake on PostgreSQL NOTIFY (default: false).
            The channel is fixed by the outbox trigger migration.
        COURIER_OUTBOX_RETRY_BACKOFF_SECONDS: Delay after the first failure,
            doubled per failure; 0 retries on every poll (default: 60)
        COURIER_OUTBOX_RETRY_BACKOFF_MAX_SECONDS: Cap on that delay (default: 1800)
        COURIER_OUTBOX_DEFAULT_TOPIC: Topic for unrouted event types
    """

    model_config = SettingsConfigDict(
        env_prefix="COURIER_OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Run the outbox publisher")
    poll_interval_seconds: float = Field(
        default=30,
        description="Seconds between outbox polls",
        gt=0,
    )
    batch_size: int = Field(
        default=100,
        description="Maximum records published per poll",
        ge=1,
        le=10_000,
    )
    max_retries: int = Field(
        default=5,
        description="Failed attempts allowed before a record is dead-lettered",
        ge=0,
    )
    dead_letter_policy: DeadLetterPolicy = Field(
        default=DeadLetterPolicy.MOVE,
        description="Move undeliverable records to the dead-letter table or delete them",
    )
    processed_retention_days: float = Field(
        default=7,
        description="Days to keep processed records before cleanup",
        gt=0,
    )
    notify_enabled: bool = Field(
        default=False,
        description="Wake the publisher on PostgreSQL NOTIFY",
    )
    retry_backoff_seconds: float = Field(
        default=60,
        description="Base delay before retrying a failed record; 0 disables backoff",
        ge=0,
    )
    retry_backoff_max_seconds: float = Field(
        default=1800,
        description="Upper bound on the delay before retrying a failed record",
        gt=0,
    )
    default_topic: str = Field(
        default="auth.events.unknown",
        description="Topic for event types without a route",
    )

    @property
    def retry_backoff(self) -> RetryBackoff | None:
        if self.retry_backoff_seconds == 0:
            return None
        base = timedelta(seconds=self.retry_backoff_seconds)
        return RetryBackoff(
            base=base,
            max_delay=max(base, timedelta(seconds=self.retry_backoff_max_seconds)),
        )


class KafkaSettings(BaseSettings):
    """Kafka producer settings.

    Leaving COURIER_KAFKA_BOOTSTRAP_SERVERS unset disables publishing.

    Environment variables:
        COURIER_KAFKA_BOOTSTRAP_SERVERS: Comma separated host:port list
        COURIER_KAFKA_CLIENT_ID: Producer client id (default: courier-outbox)
        COURIER_KAFKA_COMPRESSION_TYPE: gzip, snappy, lz4, zstd or none
        COURIER_KAFKA_REQUEST_TIMEOUT_MS: Broker request timeout
        COURIER_KAFKA_RETRY_BACKOFF_MS: Producer-internal retry backoff
        COURIER_KAFKA_LINGER_MS: Batching delay
        COURIER_KAFKA_MAX_SEND_ATTEMPTS: Attempts per message (default: 3)
        COURIER_KAFKA_SEND_BACKOFF_MAX_SECONDS: Cap on the backoff between attempts
        COURIER_KAFKA_SOURCE: Value of the source header (default: courier.iam)
    """

    model_config = SettingsConfigDict(
        env_prefix="COURIER_KAFKA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    bootstrap_servers: str | None = Field(
        default=None,
        description="Kafka bootstrap servers; unset disables publishing",
    )
    client_id: str = Field(default="courier-outbox", description="Producer client id")
    compression_type: Literal["gzip", "snappy", "lz4", "zstd", "none"] = Field(
        default="gzip",
        description="Payload compression codec",
    )
    request_timeout_ms: int = Field(
        default=30_000, description="Broker request timeout", ge=1
    )
    retry_backoff_ms: int = Field(
        default=1_000, description="Producer-internal retry backoff", ge=0
    )
    linger_ms: int = Field(default=5, description="Batching delay", ge=0)
    max_send_attempts: int = Field(
        default=3,
        description="Attempts per message on transient errors",
        ge=1,
        le=10,
    )
    send_backoff_max_seconds: float = Field(
        default=10,
        description="Cap on the exponential backoff between attempts",
        gt=0,
    )
    source: str = Field(default="courier.iam", description="Source header value")

    @property
    def is_configured(self) -> bool:
        return bool(self.bootstrap_servers)


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Courier API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def outbox(self) -> OutboxSettings:
        return get_outbox_settings()

    @property
    def kafka(self) -> KafkaSettings:
        return get_kafka_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_outbox_settings() -> OutboxSettings:
    return OutboxSettings()


@lru_cache
def get_kafka_settings() -> KafkaSettings:
    return KafkaSettings()
