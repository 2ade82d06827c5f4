"""
Configuration settings for the rollout watcher.
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    APP_NAME: str = Field(default="rollout-watcher", description="Application name")
    APP_ENV: str = Field(default="dev", description="Environment: dev|staging|prod")

    # HTTP Configuration
    HTTP_PORT: int = Field(default=8002, description="Service port")

    # Kubernetes Configuration
    K8S_NAMESPACE: str = Field(default="default", description="Kubernetes namespace")
    K8S_CONTEXT: Optional[str] = Field(default=None, description="Kubernetes context")
    K8S_IN_CLUSTER: bool = Field(default=False, description="Running in cluster")

    # Rollout watching
    POLL_INTERVAL_SECS: float = Field(default=3.0, description="Seconds between polling ticks")
    MAX_WATCH_SECS: float = Field(default=420.0, description="Give up watching a rollout after this long")
    REPLICA_SET_TIMEOUT_SECS: float = Field(default=300.0, description="ReplicaSet considered timed out after this long")
    MAX_TRANSPORT_RETRIES: int = Field(default=5, description="Consecutive transport errors tolerated by watch()")
    MAX_BACKOFF_SECS: float = Field(default=30.0, description="Upper bound for transport error backoff")
    ROLLOUT_TOLERANCE: Optional[str] = Field(
        default=None,
        description="Default partial rollout tolerance: unset|dynamic|<replicas>",
    )

    # Service Configuration
    REQUEST_TIMEOUT_SECS: int = Field(default=30, description="Request timeout")
    LOG_LEVEL: str = Field(default="info", description="Log level: info|debug|warning")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
