#!/usr/bin/env python3
"""
lxc-cuda - GPU Passthrough Planner

Decides which host NVIDIA device nodes a container gets and in which
order. Planning is a pure computation over a snapshot of the host: the
only outside information it consults is the injected existence check.

Slot numbering is contiguous from 0 across GPU, auxiliary and capability
directives, so two runs over the same host produce identical output.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from common.exceptions import InvalidConfigError

from .devices import (
    AuxiliaryDevice,
    CAPABILITY_DIRECTORY,
    DEFAULT_AUXILIARY_DEVICES,
    HostGpu,
)

# Character device majors for nvidia (195) and nvidia-uvm (509)
NVIDIA_CGROUP_MAJORS = (195, 509)
VISIBLE_DEVICES_VARIABLE = "CUDA_VISIBLE_DEVICES"


@dataclass(frozen=True)
class GpuSelection:
    """Which GPUs to expose: every enumerated GPU, or exactly one index."""

    index: Optional[int] = None

    ALL_KEYWORD = "all"

    @classmethod
    def all(cls) -> "GpuSelection":
        return cls(None)

    @classmethod
    def specific(cls, index: int) -> "GpuSelection":
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise InvalidConfigError("gpu_selection", index, "GPU index must be a non-negative integer")
        return cls(index)

    @classmethod
    def parse(cls, value: Union[str, int, "GpuSelection"]) -> "GpuSelection":
        """
        Parse a selection from user or environment input.

        Accepts "all" (any case) or a non-negative integer, as a string
        or an int.

        Raises:
            InvalidConfigError: If the value is neither.
        """
        if isinstance(value, GpuSelection):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.specific(value)

        text = str(value).strip()
        if text.lower() == cls.ALL_KEYWORD:
            return cls.all()
        if text.isdigit():
            return cls.specific(int(text))

        raise InvalidConfigError(
            "gpu_selection", value,
            f"expected '{cls.ALL_KEYWORD}' or a non-negative GPU index",
        )

    @property
    def is_all(self) -> bool:
        return self.index is None

    def __str__(self) -> str:
        return self.ALL_KEYWORD if self.is_all else str(self.index)


class DirectiveKind(Enum):
    """Where a device directive came from."""
    GPU = "gpu"
    AUXILIARY = "auxiliary"
    CAPABILITY = "capability"


@dataclass(frozen=True)
class DeviceDirective:
    """A host device node bound to a container device slot."""
    slot: int
    path: str
    kind: DirectiveKind


@dataclass(frozen=True)
class CgroupRule:
    """Allow the container to use a class of character devices."""
    major: int
    minor: str = "*"
    access: str = "rwm"

    def __str__(self) -> str:
        return f"c {self.major}:{self.minor} {self.access}"


@dataclass(frozen=True)
class EnvironmentDirective:
    """An environment variable set inside the container."""
    name: str
    value: str

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


NVIDIA_CGROUP_RULES: Tuple[CgroupRule, ...] = tuple(
    CgroupRule(major) for major in NVIDIA_CGROUP_MAJORS
)


@dataclass(frozen=True)
class PassthroughPlan:
    """Everything to append to one container's configuration."""

    selection: GpuSelection
    directives: Tuple[DeviceDirective, ...] = ()
    cgroup_rules: Tuple[CgroupRule, ...] = NVIDIA_CGROUP_RULES
    environment: Optional[EnvironmentDirective] = None
    selection_matched: bool = True
    host_gpu_count: int = 0

    def _of_kind(self, kind: DirectiveKind) -> Tuple[DeviceDirective, ...]:
        return tuple(d for d in self.directives if d.kind is kind)

    @property
    def primary_directives(self) -> Tuple[DeviceDirective, ...]:
        return self._of_kind(DirectiveKind.GPU)

    @property
    def auxiliary_directives(self) -> Tuple[DeviceDirective, ...]:
        return self._of_kind(DirectiveKind.AUXILIARY)

    @property
    def capability_directives(self) -> Tuple[DeviceDirective, ...]:
        return self._of_kind(DirectiveKind.CAPABILITY)

    @property
    def device_count(self) -> int:
        return len(self.directives)

    @property
    def is_empty(self) -> bool:
        return not self.directives


@dataclass
class _SlotAllocator:
    exists: Callable[[str], bool]
    directives: list = field(default_factory=list)

    def add(self, path: str, kind: DirectiveKind) -> bool:
        if not self.exists(path):
            return False
        self.directives.append(DeviceDirective(len(self.directives), path, kind))
        return True


class PassthroughPlanner:
    """
    Computes a PassthroughPlan from enumerated GPUs and a selection.

    Example:
        planner = PassthroughPlanner(exists=scanner.exists)
        plan = planner.plan(gpus, GpuSelection.parse("all"),
                            capability_entries=scanner.capability_entries())
    """

    def __init__(
        self,
        exists: Callable[[str], bool] = os.path.exists,
        capability_directory: str = CAPABILITY_DIRECTORY,
    ):
        self._exists = exists
        self.capability_directory = capability_directory

    def plan(
        self,
        host_gpus: Iterable[HostGpu],
        selection: GpuSelection,
        auxiliary_devices: Sequence[AuxiliaryDevice] = DEFAULT_AUXILIARY_DEVICES,
        capability_entries: Iterable[str] = (),
    ) -> PassthroughPlan:
        """
        Plan the device directives for one container.

        Missing devices are skipped rather than reported, and an unknown
        GPU index yields no GPU directive. Text such as "all" or "1" is
        parsed by the caller with ``GpuSelection.parse`` beforehand.

        Args:
            host_gpus: GPUs reported by the host, in any order
            selection: Which GPUs to expose
            auxiliary_devices: Fixed auxiliary nodes in priority order
            capability_entries: Nodes found in the capability directory

        Returns:
            The plan, possibly with no directives.
        """
        gpus = sorted(host_gpus, key=lambda gpu: gpu.index)
        slots = _SlotAllocator(self._exists)

        environment = None
        selection_matched = True

        if selection.is_all:
            for gpu in gpus:
                slots.add(gpu.device_path, DirectiveKind.GPU)
        else:
            selected = next((gpu for gpu in gpus if gpu.index == selection.index), None)
            selection_matched = selected is not None
            if selected is not None:
                slots.add(selected.device_path, DirectiveKind.GPU)
                environment = EnvironmentDirective(VISIBLE_DEVICES_VARIABLE, str(selected.index))

        for device in auxiliary_devices:
            slots.add(device.path, DirectiveKind.AUXILIARY)

        if self._exists(self.capability_directory):
            for path in sorted(capability_entries):
                slots.add(path, DirectiveKind.CAPABILITY)

        return PassthroughPlan(
            selection=selection,
            directives=tuple(slots.directives),
            cgroup_rules=NVIDIA_CGROUP_RULES,
            environment=environment,
            selection_matched=selection_matched,
            host_gpu_count=len(gpus),
        )
