"""Configuration management for Book Forge."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline tunables and provider settings, loaded from environment and .env file.

    Components receive a Settings instance explicitly; get_settings() is only
    a convenience for the CLI.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BOOKFORGE_",
    )

    # Provider
    llm_provider: str = Field(default="ollama", description="ollama, huggingface or openai")
    ollama_base_url: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3.1:8b")
    hf_api_key: str = Field(default="")
    hf_model: str = Field(default="meta-llama/Llama-3.1-70B-Instruct")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o-mini")
    request_timeout: float = Field(default=120.0, gt=0, description="Seconds per generation call")

    # Retry policy
    max_retries: int = Field(default=3, ge=1, description="Attempts per validated planning step")
    backoff_base: float = Field(default=1.0, ge=0, description="First backoff delay in seconds")
    gateway_attempts: int = Field(default=3, ge=1, description="Attempts per gateway call")

    # Drift guard
    drift_threshold: float = Field(default=35.0, description="Overall drift above this is invalid")
    drift_regenerate_threshold: float = Field(default=50.0, description="Overall drift above this is regenerated")
    drift_history_size: int = Field(default=5, ge=1)

    # Redundancy reducer
    redundancy_action_threshold: float = Field(default=15.0)
    redundancy_check_threshold: float = Field(default=25.0)
    redundancy_rewrite_threshold: float = Field(default=35.0)
    redundancy_window: int = Field(default=2000, description="Words of prior text in the sliding window")
    repetition_threshold: int = Field(default=3)
    critical_repetition_threshold: int = Field(default=5)

    # Generation
    batch_size: int = Field(default=3, ge=1, description="Chapters per detail-generation batch")
    max_section_attempts: int = Field(default=3, ge=1)
    strict_sanity: bool = Field(default=True, description="Major sanity issues fail the section")
    progress_min_interval: float = Field(default=1.0, ge=0)

    # Paths / logging
    output_dir: Path = Field(default=Path("output"))
    log_level: str = Field(default="INFO")

    @property
    def model_name(self) -> str:
        """Model name for the configured provider."""
        if self.llm_provider == "huggingface":
            return self.hf_model
        if self.llm_provider == "openai":
            return self.openai_model
        return self.ollama_model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
