from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BackendKind = Literal["bedrock", "ollama"]


class Settings(BaseSettings):
    """Package settings loaded from CARROT_* environment variables."""

    # Active backend, one per orchestrator
    provider: BackendKind = "ollama"

    # Amazon Bedrock
    bedrock_region: str = "us-east-1"
    bedrock_endpoint_url: str | None = None
    bedrock_default_model: str = "meta.llama3-70b-instruct-v1:0"

    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    ollama_default_model: str = "llama3"
    ollama_timeout: float = 120.0

    # Generation defaults applied when a request leaves them unset
    default_temperature: float = 0.7
    default_top_p: float = 0.9
    default_max_tokens: int = 2048

    # Retry: delay before attempt n+1 is base * factor**(n-1), capped
    default_retries: int = 3
    retry_base_delay: float = 1.0
    retry_backoff_factor: float = 2.0
    retry_max_delay: float = 30.0

    # Agent / memory
    agent_max_iterations: int = 10
    agent_history_size: int = 20
    history_max_messages: int = 100

    # Logging: per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_http: str = "WARNING"          # httpx / httpcore
    log_level_aws: str = "WARNING"           # boto3 / botocore / urllib3
    log_level_backend: str = "INFO"          # Backend adapters
    log_level_agent: str = "INFO"            # Orchestrator and agent loop

    model_config = SettingsConfigDict(
        env_prefix="CARROT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads the environment once."""
    return Settings()
