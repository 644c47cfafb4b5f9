"""Centralized operator settings using pydantic-settings.

This module provides a single source of truth for all operator configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Operator configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Operator identification
    operator_name: str = Field(
        default="growthbook-operator",
        description="Name of the operator deployment, also used for kopf peering",
        validation_alias="OPERATOR_NAME",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )
    log_health_probes: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_PROBES",
        description="Log health probe and metrics endpoint requests",
    )

    # Namespace watching
    namespaces: str = Field(
        default="",
        validation_alias="GROWTHBOOK_OPERATOR_NAMESPACES",
        description="Comma-separated list of namespaces to watch (empty = all namespaces)",
    )

    # Reconciliation behavior
    max_concurrent_reconciles: int = Field(
        default=4,
        ge=1,
        validation_alias="MAX_CONCURRENT_RECONCILES",
        description="Maximum number of GrowthbookInstances reconciled concurrently",
    )
    requeue_backoff_initial_seconds: float = Field(
        default=1.0,
        gt=0,
        validation_alias="REQUEUE_BACKOFF_INITIAL_SECONDS",
        description="Delay before the first retry of a failed reconciliation",
    )
    requeue_backoff_max_seconds: float = Field(
        default=300.0,
        gt=0,
        validation_alias="REQUEUE_BACKOFF_MAX_SECONDS",
        description="Upper bound for the exponential retry delay",
    )

    # MongoDB
    mongodb_default_database: str = Field(
        default="growthbook",
        validation_alias="MONGODB_DEFAULT_DATABASE",
        description="Database used when the instance URI does not name one",
    )
    mongodb_disconnect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias="MONGODB_DISCONNECT_TIMEOUT_SECONDS",
        description="Time allowed for closing the MongoDB client after a pass",
    )
    mongodb_server_selection_timeout_ms: int = Field(
        default=30000,
        validation_alias="MONGODB_SERVER_SELECTION_TIMEOUT_MS",
        description="Server selection timeout handed to the MongoDB driver",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    @property
    def watched_namespaces(self) -> list[str] | None:
        """Parse watched namespaces from comma-separated string.

        Returns:
            List of namespace names, or None to watch all namespaces
        """
        if self.namespaces:
            return [ns.strip() for ns in self.namespaces.split(",") if ns.strip()]
        return None


# Global settings instance - initialized once at module import
settings = Settings()
