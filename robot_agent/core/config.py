"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

Grouped accessors (``settings.orchestrator``, ``settings.engine`` ...) return
plain configuration models that the agent core components accept directly, so
the core itself never reads the environment.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LLMConfig(BaseModel):
    """Language model configuration used by the planner."""

    model: Optional[str] = Field(
        default=None,
        alias="ROBOT_AGENT_LLM_MODEL",
        description="pydantic-ai model identifier, e.g. 'openai:gpt-4o'. Unset means deterministic planning.",
    )

    model_config = {"populate_by_name": True}


class LoggingSettings(BaseModel):
    """Console and file logging configuration."""

    level: str = Field(default="INFO", alias="ROBOT_AGENT_LOG_LEVEL")
    format: str = Field(default="detailed", alias="ROBOT_AGENT_LOG_FORMAT")
    to_file: bool = Field(default=False, alias="ROBOT_AGENT_LOG_TO_FILE")
    file_dir: str = Field(default="logs", alias="ROBOT_AGENT_LOG_DIR")

    model_config = {"populate_by_name": True}


class OrchestratorSettings(BaseModel):
    """Tool orchestrator configuration."""

    max_parallel_calls: int = Field(default=5, alias="ROBOT_AGENT_MAX_PARALLEL_CALLS", ge=1)
    timeout_seconds: float = Field(default=30.0, alias="ROBOT_AGENT_TOOL_TIMEOUT", gt=0)
    retry_count: int = Field(default=2, alias="ROBOT_AGENT_TOOL_RETRY_COUNT", ge=0)
    retry_delay_seconds: float = Field(default=1.0, alias="ROBOT_AGENT_TOOL_RETRY_DELAY", ge=0)

    model_config = {"populate_by_name": True}


class EngineSettings(BaseModel):
    """Execution engine configuration."""

    timeout_seconds: Optional[float] = Field(default=30.0, alias="ROBOT_AGENT_ENGINE_TIMEOUT", gt=0)
    parallel_enabled: bool = Field(default=False, alias="ROBOT_AGENT_PARALLEL_ENABLED")
    max_concurrent: int = Field(default=3, alias="ROBOT_AGENT_MAX_CONCURRENT", ge=1)
    fail_fast: bool = Field(default=False, alias="ROBOT_AGENT_FAIL_FAST")

    model_config = {"populate_by_name": True}


class PermissionSettings(BaseModel):
    """Permission evaluator session configuration."""

    session_timeout_seconds: float = Field(default=300.0, alias="ROBOT_AGENT_SESSION_TIMEOUT", gt=0)
    max_approvals_per_session: int = Field(default=100, alias="ROBOT_AGENT_MAX_APPROVALS", ge=0)
    backup_dir: str = Field(default=".robot-backups", alias="ROBOT_AGENT_BACKUP_DIR")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Robot Agent Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="ROBOT_AGENT_LOG_LEVEL",
    )
    log_format: str = Field(default="detailed", alias="ROBOT_AGENT_LOG_FORMAT")
    log_to_file: bool = Field(default=False, alias="ROBOT_AGENT_LOG_TO_FILE")
    log_file_dir: str = Field(default="logs", alias="ROBOT_AGENT_LOG_DIR")
    working_directory: Optional[str] = Field(
        default=None,
        description="Working directory handed to tools; defaults to the process cwd",
        alias="ROBOT_AGENT_WORKING_DIRECTORY",
    )
    llm_model: Optional[str] = Field(default=None, alias="ROBOT_AGENT_LLM_MODEL")

    max_parallel_calls: int = Field(default=5, alias="ROBOT_AGENT_MAX_PARALLEL_CALLS")
    tool_timeout: float = Field(default=30.0, alias="ROBOT_AGENT_TOOL_TIMEOUT")
    tool_retry_count: int = Field(default=2, alias="ROBOT_AGENT_TOOL_RETRY_COUNT")
    tool_retry_delay: float = Field(default=1.0, alias="ROBOT_AGENT_TOOL_RETRY_DELAY")

    engine_timeout: Optional[float] = Field(default=30.0, alias="ROBOT_AGENT_ENGINE_TIMEOUT")
    parallel_enabled: bool = Field(default=False, alias="ROBOT_AGENT_PARALLEL_ENABLED")
    max_concurrent: int = Field(default=3, alias="ROBOT_AGENT_MAX_CONCURRENT")
    fail_fast: bool = Field(default=False, alias="ROBOT_AGENT_FAIL_FAST")

    session_timeout: float = Field(default=300.0, alias="ROBOT_AGENT_SESSION_TIMEOUT")
    max_approvals: int = Field(default=100, alias="ROBOT_AGENT_MAX_APPROVALS")
    backup_dir: str = Field(default=".robot-backups", alias="ROBOT_AGENT_BACKUP_DIR")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logging(self) -> LoggingSettings:
        """Get logging configuration from environment variables."""
        return LoggingSettings.model_validate(self.model_dump(by_alias=True))

    @property
    def llm(self) -> LLMConfig:
        """Get language model configuration from environment variables."""
        return LLMConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def orchestrator(self) -> OrchestratorSettings:
        """Get tool orchestrator configuration from environment variables."""
        return OrchestratorSettings.model_validate(self.model_dump(by_alias=True))

    @property
    def engine(self) -> EngineSettings:
        """Get execution engine configuration from environment variables."""
        return EngineSettings.model_validate(self.model_dump(by_alias=True))

    @property
    def permissions(self) -> PermissionSettings:
        """Get permission evaluator configuration from environment variables."""
        return PermissionSettings.model_validate(self.model_dump(by_alias=True))


def get_settings() -> Settings:
    """Build a fresh ``Settings`` instance from the current environment."""
    return Settings()
