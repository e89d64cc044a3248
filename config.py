"""
Process-level settings.

Settings are grouped by concern and read from ``IMAGIFY_*`` environment
variables once per process. Nested fields use ``__`` as the delimiter:

- system: IMAGIFY_SYSTEM__LOG_LEVEL, IMAGIFY_SYSTEM__DEBUG
- processing: IMAGIFY_PROCESSING__TOOL_TIMEOUT_S, IMAGIFY_PROCESSING__MAX_WORKERS,
  IMAGIFY_PROCESSING__FAIL_FAST
- tools: IMAGIFY_TOOLS__BINARY_DIR, IMAGIFY_TOOLS__PLATFORM
"""

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.constants import PipelineConstants, ToolConstants


class SystemSettings(BaseModel):
    """Logging and debug switches"""

    class Config:
        extra = "forbid"

    log_level: str = Field(default="INFO", description="Root logger level")
    debug: bool = False

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, value):
        level = str(value).strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level


class ProcessingSettings(BaseModel):
    """Pipeline execution policy"""

    class Config:
        extra = "forbid"

    tool_timeout_s: float = Field(default=ToolConstants.DEFAULT_TIMEOUT_S, gt=0)
    max_workers: int = Field(default=PipelineConstants.DEFAULT_MAX_WORKERS, ge=1)
    fail_fast: bool = False


class ToolSettings(BaseModel):
    """Where native binaries live"""

    class Config:
        extra = "forbid"

    binary_dir: Optional[str] = Field(
        None, description="Directory with optimizer binaries; unset disables the native driver"
    )
    platform: Optional[str] = Field(None, description="OS family override (linux, darwin, windows, freebsd)")


class Settings(BaseSettings):
    """All process settings"""

    model_config = SettingsConfigDict(env_prefix="IMAGIFY_", env_nested_delimiter="__", extra="ignore")

    system: SystemSettings = Field(default_factory=SystemSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    return Settings()
