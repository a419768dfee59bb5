#!/usr/bin/env python3
"""
lxc-cuda - GPU Passthrough Provisioner

Runs the provisioning sequence for one container:
- check the NVIDIA driver on the host and enumerate GPUs
- plan and render the passthrough block
- back up and extend the container's configuration
- restart the container and check that nvidia-smi works inside it

Missing devices and failed checks become warnings; only host-level
problems (no driver, no config file) stop the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from common.decorators import timed
from common.exceptions import ContainerError
from common.logging_config import LogContext

from .container_config import LxcConfigFile
from .devices import HostDeviceScanner
from .gpu_query import NvidiaSmi
from .pct import PctClient, validate_ctid
from .planner import PassthroughPlan, PassthroughPlanner
from .renderer import PlanRenderer
from .settings import Settings

logger = logging.getLogger(__name__)

NO_DEVICES_WARNING = (
    "No GPU devices were added to the container configuration. "
    "The GPU may not be accessible, consider restarting the container."
)


@dataclass
class ProvisionResult:
    """Outcome of provisioning one container."""

    ctid: str
    plan: PassthroughPlan
    rendered: str
    config_path: Path
    backup_path: Optional[Path] = None
    applied: bool = False
    restarted: bool = False
    gpu_accessible: Optional[bool] = None  # None when not checked

    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class GpuPassthroughProvisioner:
    """Provisions NVIDIA GPU passthrough for Proxmox containers."""

    def __init__(
        self,
        settings: Settings,
        nvidia: Optional[NvidiaSmi] = None,
        pct: Optional[PctClient] = None,
        scanner: Optional[HostDeviceScanner] = None,
        planner: Optional[PassthroughPlanner] = None,
        renderer: Optional[PlanRenderer] = None,
    ):
        host = settings.host
        self.settings = settings
        self.nvidia = nvidia or NvidiaSmi(host.nvidia_smi, timeout=host.command_timeout)
        self.pct = pct or PctClient(host.pct, timeout=host.command_timeout)
        self.scanner = scanner or HostDeviceScanner(host.device_root)
        self.planner = planner or PassthroughPlanner(
            exists=self.scanner.exists,
            capability_directory=self.scanner.capability_directory,
        )
        self.renderer = renderer or PlanRenderer(host.template_dir)

    def build_plan(self) -> PassthroughPlan:
        """
        Check the host and plan passthrough with the configured selection.

        Raises:
            NvidiaDriverNotFoundError: If nvidia-smi is missing
            GpuQueryError: If GPU enumeration fails
        """
        self.nvidia.check_host()
        gpus = self.nvidia.list_gpus()
        logger.info(f"Found {len(gpus)} GPU(s) on host")

        return self.planner.plan(
            gpus,
            self.settings.passthrough.selection,
            capability_entries=self.scanner.capability_entries(),
        )

    def plan_warnings(self, plan: PassthroughPlan) -> List[str]:
        """Conditions worth reporting that do not stop provisioning."""
        warnings = []
        if not plan.selection_matched:
            warnings.append(
                f"GPU {plan.selection.index} was not found on the host; "
                "no GPU device node will be passed through."
            )
        elif plan.host_gpu_count and not plan.primary_directives:
            warnings.append(
                f"No device node exists for GPU selection '{plan.selection}'; "
                "no GPU device node will be passed through."
            )
        if plan.is_empty:
            warnings.append(NO_DEVICES_WARNING)
        return warnings

    def render(self, plan: PassthroughPlan) -> str:
        return self.renderer.render(plan, self.settings.passthrough.style)

    @timed
    def provision(self, ctid: Union[str, int], dry_run: bool = False) -> ProvisionResult:
        """
        Configure GPU passthrough for a container.

        Args:
            ctid: Container id
            dry_run: Plan and render only; touch nothing

        Returns:
            ProvisionResult with the plan, rendered block and any warnings

        Raises:
            InvalidConfigError: If the container id is not numeric
            NvidiaDriverNotFoundError: If the host has no NVIDIA driver
            ContainerConfigNotFoundError: If the container config is missing
        """
        ctid = validate_ctid(ctid)
        config = LxcConfigFile(ctid, self.settings.host.lxc_config_dir)

        with LogContext(ctid=ctid, operation="provision"):
            logger.info(f"Configuring GPU passthrough for CT {ctid}")

            plan = self.build_plan()
            result = ProvisionResult(
                ctid=ctid,
                plan=plan,
                rendered=self.render(plan),
                config_path=config.path,
            )
            for warning in self.plan_warnings(plan):
                self._warn(result, warning)

            if dry_run:
                logger.info(f"Dry run: would append {plan.device_count} device(s) to {config.path}")
                return result

            if config.has_passthrough_block():
                self._warn(
                    result,
                    f"{config.path} already contains a GPU passthrough block; "
                    "appending another one.",
                )

            result.backup_path = config.backup()
            config.append(result.rendered)
            result.applied = True
            logger.info(f"GPU passthrough configured ({plan.device_count} devices)")

            passthrough = self.settings.passthrough
            if passthrough.restart_container:
                self._restart(result, passthrough.restart_settle_seconds)

            if passthrough.validate_access and result.restarted:
                try:
                    result.gpu_accessible = self.validate_gpu_access(ctid)
                except ContainerError as e:
                    logger.debug(f"GPU check in CT {ctid} failed: {e}")
                    result.gpu_accessible = False
                if not result.gpu_accessible:
                    self._warn(result, f"GPU not accessible. Try: pct restart {ctid}")

            return result

    @staticmethod
    def _warn(result: ProvisionResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)

    def _restart(self, result: ProvisionResult, settle_seconds: float) -> None:
        try:
            self.pct.restart(result.ctid, settle_seconds=settle_seconds)
            result.restarted = True
        except ContainerError as e:
            logger.error(f"Restart of CT {result.ctid} failed: {e}")
            result.errors.append(e.message)

    def validate_gpu_access(self, ctid: Union[str, int]) -> bool:
        """Run nvidia-smi inside the container."""
        check = self.pct.exec(ctid, "nvidia-smi")
        if check.returncode != 0:
            return False

        details = self.pct.exec(
            ctid, "nvidia-smi",
            "--query-gpu=name,driver_version,memory.total", "--format=csv",
        )
        if details.returncode == 0 and details.stdout.strip():
            logger.info(f"GPU accessible in container:\n{details.stdout.strip()}")
        else:
            logger.info("GPU accessible in container")
        return True
