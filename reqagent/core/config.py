"""Engine configuration settings."""

import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

# Load environment variables from .env file
load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class EngineSettings(BaseSettings):
    """Process-wide configuration with environment variable support."""

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Record store (MongoDB)
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017/?directConnection=true",
        description="MongoDB connection string",
    )
    mongodb_database: str = Field(default="reqagent", description="Database name")

    # Fallback cloud provider, used only when no provider config is active
    openai_api_key: Optional[str] = Field(
        default=None, description="Default OpenAI credential used when the registry is empty"
    )
    default_model: str = Field(default="gpt-4-turbo", description="Model for the fallback provider")
    cloud_timeout_seconds: float = Field(default=120.0, description="Default timeout for cloud providers")
    self_hosted_timeout_seconds: float = Field(
        default=600.0, description="Default timeout for vLLM / Ollama providers"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_sink_queue_size: int = Field(
        default=1000, description="Bounded queue size for execution log writes"
    )

    # Orchestration
    max_job_steps: int = Field(default=50, description="Governance ceiling on steps per job")
    validation_threshold: int = Field(default=90, description="Score accepted by the validate/refine loop")
    validation_max_iterations: int = Field(default=3, description="Validate/refine loop bound")
    agent_cache_ttl_seconds: int = Field(default=300, description="TTL for cached agent results")

    # Duplicate detection
    duplicate_title_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    duplicate_content_threshold: float = Field(default=0.80, ge=0.0, le=1.0)
    duplicate_scan_window: int = Field(
        default=500, description="Most recent records compared by a single duplicate check"
    )


_settings_cache: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Get cached engine settings, loading them on first use."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = EngineSettings()
    return _settings_cache


def configure_logging(level: Optional[str] = None):
    """Configure root logging the same way for every entry point."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
    )


settings = get_settings()
