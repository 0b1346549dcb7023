"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
Every limit the orchestrator enforces (iteration ceiling, retry ceiling, window size,
summarization threshold, dangerous tool list, timeouts) is read from here so nothing
is hard-coded in the nodes.

Example:
    from reflectAgent.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    max_iterations = settings.governance.max_iterations
    window = settings.memory.window_size
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional, Union

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


DEFAULT_DANGEROUS_TOOLS = ["shell_command", "write_file", "delete_file", "http_request"]


class ModelRoutingSettings(BaseSettings):
    """Vendor-neutral model identifier, credentials and per-role sampling.

    All roles (planner, executor, reflector, summarizer, chat) share one endpoint.
    Roles differ only in temperature and output token caps:
    - planner: 0.3 (structured, consistent plans)
    - executor: 0.5
    - reflector: 0.2, max 1024 tokens
    - summarizer: 0.3, max 1024 tokens
    - chat: MODEL_TEMPERATURE (default 0.7)
    """

    provider: str = Field(
        default="openai",
        validation_alias=AliasChoices("MODEL_PROVIDER", "LLM_PROVIDER"),
    )
    model_id: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("MODEL_ID", "MODEL_NAME", "OPENAI_MODEL"),
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_API_KEY", "OPENROUTER_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_URL", "OPENAI_BASE_URL"),
    )

    temperature: float = Field(default=0.7, ge=0.0, le=2.0, alias="MODEL_TEMPERATURE")
    max_output_tokens: int = Field(default=2048, ge=64, le=32768, alias="MODEL_MAX_OUTPUT_TOKENS")
    request_timeout: float = Field(default=60.0, gt=0, alias="MODEL_TIMEOUT")

    planner_temperature: float = Field(default=0.3, ge=0.0, le=2.0, alias="PLANNER_TEMPERATURE")
    executor_temperature: float = Field(default=0.5, ge=0.0, le=2.0, alias="EXECUTOR_TEMPERATURE")
    reflector_temperature: float = Field(default=0.2, ge=0.0, le=2.0, alias="REFLECTOR_TEMPERATURE")
    reflector_max_tokens: int = Field(default=1024, ge=64, alias="REFLECTOR_MAX_TOKENS")
    summarizer_temperature: float = Field(default=0.3, ge=0.0, le=2.0, alias="SUMMARIZER_TEMPERATURE")
    summarizer_max_tokens: int = Field(default=1024, ge=64, alias="SUMMARIZER_MAX_TOKENS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class GovernanceSettings(BaseSettings):
    """Runtime governance and control settings.

    Controls agent behavior limits and policies:
    - max_iterations: Iteration ceiling per turn (default: 10)
    - max_retries: Retry ceiling per step (default: 3)
    - dangerous_tools: Tools that always go through the approval gate
    - tool_timeout: Seconds before a tool invocation is abandoned
    - approval_timeout: Seconds to wait for a reviewer (None waits forever)
    - retry_backoff_seconds: Base delay for exponential retry backoff (0 retries immediately)
    """

    max_iterations: int = Field(default=10, ge=1, le=200, alias="MAX_ITERATIONS")
    max_retries: int = Field(default=3, ge=0, le=20, alias="MAX_RETRIES")
    dangerous_tools: Union[List[str], str] = Field(
        default_factory=lambda: list(DEFAULT_DANGEROUS_TOOLS),
        alias="DANGEROUS_TOOLS",
    )
    tool_timeout: float = Field(default=30.0, gt=0, alias="TOOL_TIMEOUT")
    approval_timeout: Optional[float] = Field(default=None, alias="APPROVAL_TIMEOUT")
    retry_backoff_seconds: float = Field(default=0.0, ge=0.0, alias="RETRY_BACKOFF_SECONDS")
    approval_rules_path: Optional[str] = Field(default=None, alias="APPROVAL_RULES_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("dangerous_tools", mode="before")
    @classmethod
    def _split_tool_list(cls, value):
        # Accept "a,b,c" from .env as well as a JSON list
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class MemorySettings(BaseSettings):
    """Conversation memory (sliding window + summarization).

    - window_size: Recent messages sent to the model verbatim (default: 10)
    - summarization_threshold: Unsummarized count that triggers a summary (default: 20)
    - memory_db_path: SQLite file holding messages and summaries
    """

    window_size: int = Field(default=10, ge=1, le=200, alias="WINDOW_SIZE")
    summarization_threshold: int = Field(default=20, ge=2, le=1000, alias="SUMMARIZATION_THRESHOLD")
    enable_summarization: bool = Field(default=True, alias="ENABLE_SUMMARIZATION")
    memory_db_path: str = Field(default="data/memory.db", alias="MEMORY_DB_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ObservabilitySettings(BaseSettings):
    """Logging and snapshot persistence configuration."""

    log_dir: str = Field(default="logs", alias="LOG_DIR")
    log_prompt_max_length: int = Field(default=500, ge=100, le=5000, alias="LOG_PROMPT_MAX_LENGTH")

    # Session snapshot database path (plan, step results, pending approval)
    session_db_path: str = Field(default="data/sessions.db", alias="SESSION_DB_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Hierarchical structure containing four nested settings groups:
    - models: Model endpoint and per-role sampling (ModelRoutingSettings)
    - governance: Iteration/retry ceilings and approval policy (GovernanceSettings)
    - memory: Sliding window and summarization (MemorySettings)
    - observability: Logging and snapshot storage (ObservabilitySettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    models: ModelRoutingSettings = Field(default_factory=ModelRoutingSettings)
    governance: GovernanceSettings = Field(default_factory=GovernanceSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance.

    Returns:
        Settings: Cached application settings instance
    """
    return Settings()
