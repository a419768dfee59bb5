"""lxc-cuda: NVIDIA GPU passthrough for Proxmox LXC containers.

This package provides:
- Host GPU enumeration (nvidia-smi)
- Passthrough planning (which device nodes, in which slots)
- Rendering to Proxmox devN: or lxc.mount.entry directives
- Applying the result to a container and restarting it
"""

from .devices import HostGpu, AuxiliaryDevice, HostDeviceScanner, DEFAULT_AUXILIARY_DEVICES
from .planner import (
    GpuSelection, DirectiveKind, DeviceDirective, CgroupRule,
    EnvironmentDirective, PassthroughPlan, PassthroughPlanner,
)
from .renderer import DirectiveStyle, PlanRenderer
from .gpu_query import NvidiaSmi, parse_gpu_csv
from .pct import PctClient, validate_ctid
from .container_config import LxcConfigFile
from .provisioner import GpuPassthroughProvisioner, ProvisionResult
from .settings import Settings, load_settings

__all__ = [
    # Devices
    "HostGpu",
    "AuxiliaryDevice",
    "HostDeviceScanner",
    "DEFAULT_AUXILIARY_DEVICES",
    # Planning
    "GpuSelection",
    "DirectiveKind",
    "DeviceDirective",
    "CgroupRule",
    "EnvironmentDirective",
    "PassthroughPlan",
    "PassthroughPlanner",
    # Rendering
    "DirectiveStyle",
    "PlanRenderer",
    # Host and container glue
    "NvidiaSmi",
    "parse_gpu_csv",
    "PctClient",
    "validate_ctid",
    "LxcConfigFile",
    "GpuPassthroughProvisioner",
    "ProvisionResult",
    # Configuration
    "Settings",
    "load_settings",
]

__version__ = "0.1.0"
