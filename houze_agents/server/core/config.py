"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class EngineConfig(BaseModel):
    """Execution engine configuration (queue, worker pool, retries, timeouts)."""

    worker_count: int = Field(default=4, ge=1, description="Number of concurrent run workers")
    queue_capacity: int = Field(default=100, ge=1, description="Maximum number of queued run ids")
    max_attempts: int = Field(default=3, ge=1, description="Attempts per model/tool call before giving up")
    backoff_initial: float = Field(default=0.5, ge=0.0, description="Initial retry backoff in seconds")
    backoff_factor: float = Field(default=2.0, ge=1.0, description="Exponential backoff factor")
    backoff_max: float = Field(default=8.0, ge=0.0, description="Maximum retry backoff in seconds")
    model_timeout_seconds: Optional[float] = Field(
        default=120.0, gt=0.0, description="Per chat-model call timeout in seconds"
    )
    run_timeout_seconds: Optional[float] = Field(
        default=None, gt=0.0, description="Optional wall-clock limit for a whole run in seconds"
    )


class OpenAIConfig(BaseModel):
    """OpenAI API configuration used by the chat model adapter."""

    api_key: Optional[str] = Field(default=None, description="OpenAI API key for authentication")
    base_url: Optional[str] = Field(default=None, description="Custom OpenAI-compatible base URL (optional)")
    provider_prefix: str = Field(default="openai", description="pydantic-ai provider prefix for model names")


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(default="0.0.0.0", alias="HOUZE_AGENTS_SERVER_HOST")
    server_port: int = Field(default=8000, alias="HOUZE_AGENTS_SERVER_PORT")

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="HOUZE_AGENTS_LOG_LEVEL",
    )
    log_format: str = Field(default="detailed", description="simple, detailed or json", alias="LOG_FORMAT")
    log_file_dir: str = Field(default="logs", alias="LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, alias="ENABLE_FILE_LOGGING")

    # =====================================================================
    # Persistence Configuration
    # =====================================================================
    database_url: Optional[str] = Field(
        default=None,
        description="Async SQLAlchemy URL for the run store; in-memory store when unset",
        alias="DATABASE_URL",
    )

    # =====================================================================
    # Engine Configuration
    # =====================================================================
    worker_count: int = Field(default=4, alias="AGENT_ENGINE_WORKER_COUNT")
    queue_capacity: int = Field(default=100, alias="AGENT_ENGINE_QUEUE_CAPACITY")
    max_attempts: int = Field(default=3, alias="AGENT_ENGINE_MAX_ATTEMPTS")
    backoff_initial: float = Field(default=0.5, alias="AGENT_ENGINE_BACKOFF_INITIAL")
    backoff_factor: float = Field(default=2.0, alias="AGENT_ENGINE_BACKOFF_FACTOR")
    backoff_max: float = Field(default=8.0, alias="AGENT_ENGINE_BACKOFF_MAX")
    model_timeout_seconds: Optional[float] = Field(default=120.0, alias="AGENT_ENGINE_MODEL_TIMEOUT_SECONDS")
    run_timeout_seconds: Optional[float] = Field(default=None, alias="AGENT_ENGINE_RUN_TIMEOUT_SECONDS")

    # =====================================================================
    # Model & Tool Providers
    # =====================================================================
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None, alias="OPENAI_BASE_URL")
    mcp_tool_endpoints: Dict[str, str] = Field(
        default_factory=lambda: {
            "ledgerapi": "http://ledgerservice/mcp",
            "crmapi": "http://crmservice/mcp",
            "documentsapi": "http://documentservice/mcp",
        },
        description="Tool group name -> MCP streamable HTTP endpoint",
        alias="MCP_TOOL_ENDPOINTS",
    )

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def engine(self) -> EngineConfig:
        """Get execution engine configuration."""
        return EngineConfig(
            worker_count=self.worker_count,
            queue_capacity=self.queue_capacity,
            max_attempts=self.max_attempts,
            backoff_initial=self.backoff_initial,
            backoff_factor=self.backoff_factor,
            backoff_max=self.backoff_max,
            model_timeout_seconds=self.model_timeout_seconds,
            run_timeout_seconds=self.run_timeout_seconds,
        )

    @property
    def openai(self) -> OpenAIConfig:
        """Get OpenAI configuration."""
        return OpenAIConfig(api_key=self.openai_api_key, base_url=self.openai_base_url)


settings = Settings()
