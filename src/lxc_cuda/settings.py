"""Configuration for lxc-cuda provisioning.

Every field can be overridden from the environment, e.g.
``LXC_CUDA_PASSTHROUGH__GPU_SELECTION=1`` or ``LXC_CUDA_CUDA__VERSION=12.6``.
Settings are built once by the caller and passed down explicitly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.exceptions import InvalidConfigError

from .cuda import DEFAULT_CUDA_VERSION, split_version
from .planner import GpuSelection
from .renderer import DirectiveStyle


class PassthroughSettings(BaseModel):
    """Which devices to pass through and what to do afterwards."""

    enabled: bool = Field(default=True)
    gpu_selection: str = Field(default="all")
    directive_style: Literal["dev", "mount-entry"] = Field(default="dev")
    restart_container: bool = Field(default=True)
    validate_access: bool = Field(default=True)
    restart_settle_seconds: float = Field(default=2.0, ge=0)

    @field_validator("gpu_selection", mode="before")
    @classmethod
    def normalise_selection(cls, value: Any) -> str:
        try:
            return str(GpuSelection.parse(value))
        except InvalidConfigError as e:
            raise ValueError(e.details["reason"])

    @property
    def selection(self) -> GpuSelection:
        return GpuSelection.parse(self.gpu_selection)

    @property
    def style(self) -> DirectiveStyle:
        return DirectiveStyle.parse(self.directive_style)


class HostSettings(BaseModel):
    """Host paths and tools."""

    lxc_config_dir: Path = Field(default=Path("/etc/pve/lxc"))
    nvidia_smi: str = Field(default="nvidia-smi")
    pct: str = Field(default="pct")
    device_root: Path = Field(default=Path("/"))
    command_timeout: int = Field(default=120, gt=0)
    template_dir: Optional[Path] = Field(default=None)


class CudaSettings(BaseModel):
    """CUDA toolkit release to look up."""

    version: str = Field(default=DEFAULT_CUDA_VERSION)

    @field_validator("version")
    @classmethod
    def check_version(cls, value: str) -> str:
        try:
            split_version(value)
        except InvalidConfigError as e:
            raise ValueError(e.details["reason"])
        return value.strip()


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_logs: bool = Field(default=False)
    log_file: Optional[Path] = Field(default=None)


class Settings(BaseSettings):
    """Main configuration."""

    model_config = SettingsConfigDict(env_prefix="LXC_CUDA_", env_nested_delimiter="__")

    passthrough: PassthroughSettings = Field(default_factory=PassthroughSettings)
    host: HostSettings = Field(default_factory=HostSettings)
    cuda: CudaSettings = Field(default_factory=CudaSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(**overrides: Any) -> Settings:
    """
    Build settings from defaults, the environment and explicit overrides.

    Overrides win over the environment, e.g.
    ``load_settings(passthrough={"gpu_selection": "1"})``.

    Raises:
        InvalidConfigError: If any value fails validation
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise InvalidConfigError(field, error.get("input"), error["msg"]) from e
