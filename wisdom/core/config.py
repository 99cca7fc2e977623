from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wisdom.agent.types import (
    DEFAULT_GENERATE_TIMEOUT_SECONDS,
    DEFAULT_MAX_NO_IMPROVEMENT_COUNT,
)
from wisdom.build.runner import DEFAULT_ERROR_PATTERN


class Settings(BaseSettings):
    """Host settings loaded from environment variables (prefix ``WISDOM_``).

    The agent engine itself never reads the environment; `AgentSession`
    turns these values into `AgentOptions` and collaborator instances.

    generate_timeout_seconds
    ────────────────────────
    Accepts a positive number of seconds. ``0`` (or an empty value) turns
    the generate-phase timeout off entirely, matching ``None`` in
    `AgentOptions`.
    """

    model_config = SettingsConfigDict(
        env_prefix="WISDOM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Project
    project_root: Path = Path(".")

    # Build; the command string is passed to the shell verbatim
    build_command: str = "swift build"
    build_timeout_seconds: Optional[float] = None
    error_pattern: str = DEFAULT_ERROR_PATTERN

    # Generation service
    generation_base_url: str = "http://localhost:5001/x-package/asia-northeast1"
    generation_http_timeout_seconds: float = 120.0

    # Agent policy
    max_no_improvement_count: int = DEFAULT_MAX_NO_IMPROVEMENT_COUNT
    continue_on_success: bool = True
    generate_timeout_seconds: Optional[float] = DEFAULT_GENERATE_TIMEOUT_SECONDS
    abort_on_operation_failure: bool = False

    # Source context sent to the generator
    monitored_file_types: list[str] = ["swift", "tsx", "ts", "js", "py", "rs"]
    excluded_directories: list[str] = [
        "Pods", ".git", ".storybook", "node_modules", ".next", "dataset", "ServiceAccount",
    ]
    max_context_depth: int = 5
    max_context_file_size: int = 1_000_000

    # App
    debug: bool = True

    @field_validator("max_no_improvement_count")
    @classmethod
    def check_no_improvement_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_no_improvement_count must be >= 1")
        return v

    @field_validator("generate_timeout_seconds", mode="before")
    @classmethod
    def normalise_generate_timeout(cls, v):
        if v in (None, "", 0, "0"):
            return None
        return v

    @field_validator("generate_timeout_seconds", "build_timeout_seconds")
    @classmethod
    def check_positive_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v


def get_settings() -> Settings:
    return Settings()
