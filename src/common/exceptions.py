"""
lxc-cuda Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, user feedback, and programmatic error handling.
"""

from typing import Optional, Dict, Any


class LxcCudaError(Exception):
    """
    Base exception for all lxc-cuda errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Hardware-related errors
# =============================================================================

class HardwareError(LxcCudaError):
    """Base for host hardware and driver errors."""
    pass


class NvidiaDriverNotFoundError(HardwareError):
    """The NVIDIA driver tooling is not installed on the host."""
    def __init__(self, binary: str = "nvidia-smi"):
        super().__init__(
            f"NVIDIA driver not found on host ({binary} is not on PATH). "
            "Please install NVIDIA drivers first.",
            code="NVIDIA_DRIVER_NOT_FOUND",
            details={"binary": binary},
            recoverable=False,
        )


class GpuQueryError(HardwareError):
    """The host GPU query tool failed."""
    def __init__(self, reason: str, cause: Optional[Exception] = None):
        super().__init__(
            f"GPU query failed: {reason}. Check your NVIDIA driver installation on host.",
            code="GPU_QUERY_FAILED",
            details={"reason": reason},
            cause=cause,
        )


# =============================================================================
# Container errors
# =============================================================================

class ContainerError(LxcCudaError):
    """Base for container-related errors."""
    pass


class ContainerConfigNotFoundError(ContainerError):
    """The per-container configuration file does not exist."""
    def __init__(self, ctid: str, path: str):
        super().__init__(
            f"Configuration for container {ctid} not found at {path}",
            code="CONTAINER_CONFIG_NOT_FOUND",
            details={"ctid": ctid, "path": path},
            recoverable=False,
        )


class ContainerCommandError(ContainerError):
    """A container management command exited unsuccessfully."""
    def __init__(self, command: str, returncode: int, stderr: str = ""):
        super().__init__(
            f"Command '{command}' failed with exit status {returncode}",
            code="CONTAINER_COMMAND_FAILED",
            details={
                "command": command,
                "returncode": returncode,
                "stderr": stderr.strip(),
            },
        )


class ContainerNotRunningError(ContainerError):
    """Container did not reach the running state."""
    def __init__(self, ctid: str, status: str):
        super().__init__(
            f"Container {ctid} is '{status}', expected 'running'",
            code="CONTAINER_NOT_RUNNING",
            details={"ctid": ctid, "status": status},
        )


# =============================================================================
# Installation errors
# =============================================================================

class InstallError(LxcCudaError):
    """Base for installation errors."""
    pass


class DependencyError(InstallError):
    """Missing dependency."""
    def __init__(self, dependency: str, package: Optional[str] = None):
        super().__init__(
            f"Missing dependency: {dependency}",
            code="MISSING_DEPENDENCY",
            details={"dependency": dependency, "package": package},
        )


# =============================================================================
# Configuration errors
# =============================================================================

class ConfigError(LxcCudaError):
    """Base for configuration errors."""
    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration."""
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration: {field}={value}: {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value), "reason": reason},
        )


# =============================================================================
# Permission errors
# =============================================================================

class PermissionError(LxcCudaError):
    """Permission denied."""
    def __init__(self, resource: str, operation: str):
        super().__init__(
            f"Permission denied: {operation} on {resource}",
            code="PERMISSION_DENIED",
            details={"resource": resource, "operation": operation},
            recoverable=False,
        )


# =============================================================================
# Template errors
# =============================================================================

class TemplateError(LxcCudaError):
    """Template-related errors."""
    pass


class TemplateNotFoundError(TemplateError):
    """Template not found."""
    def __init__(self, template_name: str):
        super().__init__(
            f"Template not found: {template_name}",
            code="TEMPLATE_NOT_FOUND",
            details={"template": template_name},
        )
