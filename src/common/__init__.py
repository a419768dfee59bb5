"""
lxc-cuda Common Utilities

Shared exceptions, logging and decorators.
"""

from .exceptions import (
    LxcCudaError, HardwareError, NvidiaDriverNotFoundError, GpuQueryError,
    ContainerError, ContainerConfigNotFoundError, ContainerCommandError,
    ContainerNotRunningError, InstallError, DependencyError, ConfigError,
    InvalidConfigError, PermissionError, TemplateError, TemplateNotFoundError,
)
from .decorators import retry, require_root, timed
from .logging_config import setup_logging, LogContext

__all__ = [
    # Exceptions
    "LxcCudaError", "HardwareError", "NvidiaDriverNotFoundError", "GpuQueryError",
    "ContainerError", "ContainerConfigNotFoundError", "ContainerCommandError",
    "ContainerNotRunningError", "InstallError", "DependencyError", "ConfigError",
    "InvalidConfigError", "PermissionError", "TemplateError", "TemplateNotFoundError",
    # Decorators
    "retry", "require_root", "timed",
    # Logging
    "setup_logging", "LogContext",
]
