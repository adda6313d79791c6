"""Centralized configuration using Pydantic BaseSettings"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration with environment variable support"""

    # Database
    db_path: str = Field(
        default="./data/knowledge.db", description="SQLite database file path"
    )

    # Embedding
    embedding_provider: Literal["cohere", "fastembed"] = Field(
        default="cohere", description="Embedding backend (cohere API or local fastembed)"
    )
    embedding_model: str = Field(
        default="embed-english-light-v3.0",
        description="Embedding model name, shared by document and query embedding",
    )
    embedding_dimension: int = Field(
        default=384, ge=1, description="Embedding vector dimension (384 for embed-english-light-v3.0)"
    )
    embedding_batch_size: int = Field(
        default=96, ge=1, le=96, description="Maximum number of texts per provider request"
    )
    embedding_timeout_seconds: float = Field(
        default=30.0, gt=0, le=300, description="Timeout for a single provider request"
    )
    embedding_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for transient provider failures (0 disables retrying)",
    )
    embedding_retry_backoff_seconds: float = Field(
        default=1.0, ge=0.0, description="Base delay for exponential retry backoff"
    )

    # Cohere
    cohere_api_key: str | None = Field(default=None, description="Cohere API key")
    cohere_api_url: str = Field(
        default="https://api.cohere.com/v2/embed", description="Cohere embed endpoint"
    )

    # fastembed (local provider)
    fastembed_cache_dir: str = Field(
        default="./data/models", description="Directory to cache local embedding models"
    )

    # Recall
    recall_similarity_threshold: float = Field(
        default=0.5,
        ge=-1.0,
        le=1.0,
        description="Results must have a cosine similarity strictly above this value",
    )
    recall_result_limit: int = Field(
        default=4, ge=1, le=50, description="Maximum number of results returned by recall"
    )

    # MCP Server
    mcp_host: str = Field(default="0.0.0.0", description="MCP server bind address")
    mcp_port: int = Field(default=8080, ge=1024, le=65535, description="MCP server port")

    # OpenTelemetry
    otel_logging_enabled: bool = Field(default=False, description="Enable OpenTelemetry logging")
    otel_tracing_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry tracing for HTTP requests"
    )
    otel_endpoint: str = Field(
        default="http://localhost:4318",
        description="OpenTelemetry collector endpoint (HTTP/protobuf)",
    )
    otel_service_name: str = Field(
        default="knowledge-base-mcp", description="Service name for OpenTelemetry"
    )
    otel_service_version: str = Field(
        default="1.0.0", description="Service version for OpenTelemetry"
    )
    otel_log_full_results: bool = Field(
        default=False,
        description="Include user content and results in telemetry logs",
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global config instance
config = AppConfig()
