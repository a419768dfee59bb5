"""
lxc-cuda - Host NVIDIA device nodes

Value types for the GPUs reported by the host and the fixed auxiliary
device nodes CUDA needs, plus the one helper that looks at /dev.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple


DEVICE_DIRECTORY = "/dev"
CAPABILITY_DIRECTORY = "/dev/nvidia-caps"
CAPABILITY_PATTERN = "nvidia-cap*"


@dataclass(frozen=True)
class HostGpu:
    """One NVIDIA GPU as reported by the host query tool."""

    index: int                  # ordinal from nvidia-smi
    name: str                   # e.g. "NVIDIA GeForce RTX 4090"
    memory_total: str = ""      # e.g. "24576 MiB", informational only
    device_path: Optional[str] = None

    def __post_init__(self):
        if self.device_path is None:
            object.__setattr__(self, "device_path", f"{DEVICE_DIRECTORY}/nvidia{self.index}")


@dataclass(frozen=True)
class AuxiliaryDevice:
    """A well-known device node needed by CUDA whichever GPU is selected."""

    path: str
    label: str


# Order determines slot numbering in the rendered configuration
DEFAULT_AUXILIARY_DEVICES: Tuple[AuxiliaryDevice, ...] = (
    AuxiliaryDevice("/dev/nvidiactl", "control"),
    AuxiliaryDevice("/dev/nvidia-uvm", "unified-memory"),
    AuxiliaryDevice("/dev/nvidia-uvm-tools", "unified-memory-tools"),
    AuxiliaryDevice("/dev/nvidia-modeset", "mode-set"),
)


class HostDeviceScanner:
    """
    Checks which NVIDIA device nodes exist on the host.

    Paths handed in and out are always host-absolute ("/dev/nvidia0").
    ``root`` only changes where they are looked up, so tests can point
    the scanner at a fake tree.
    """

    def __init__(self, root: Path = Path("/"),
                 capability_directory: str = CAPABILITY_DIRECTORY):
        self.root = Path(root)
        self.capability_directory = capability_directory

    def _resolve(self, path: str) -> Optional[Path]:
        """Map a host-absolute path under ``root``; None for relative paths."""
        pure = PurePosixPath(path)
        if not pure.is_absolute():
            return None
        return self.root / pure.relative_to("/")

    def exists(self, path: str) -> bool:
        """Return True if the device node exists on the host."""
        resolved = self._resolve(path)
        return resolved is not None and resolved.exists()

    def capability_directory_exists(self) -> bool:
        directory = self._resolve(self.capability_directory)
        return directory is not None and directory.is_dir()

    def capability_entries(self) -> List[str]:
        """List capability device nodes, sorted by path."""
        if not self.capability_directory_exists():
            return []

        directory = self._resolve(self.capability_directory)
        return sorted(
            f"{self.capability_directory}/{entry.name}"
            for entry in directory.glob(CAPABILITY_PATTERN)
        )

    def auxiliary_status(
        self,
        devices: Tuple[AuxiliaryDevice, ...] = DEFAULT_AUXILIARY_DEVICES,
    ) -> List[Tuple[AuxiliaryDevice, bool]]:
        """Report presence of each auxiliary device, for diagnostics."""
        return [(device, self.exists(device.path)) for device in devices]
