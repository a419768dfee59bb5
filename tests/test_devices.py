"""
Tests for host device types and the /dev scanner.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lxc_cuda.devices import (
    DEFAULT_AUXILIARY_DEVICES,
    HostDeviceScanner,
    HostGpu,
)


class TestHostGpu:
    """Tests for the HostGpu value type."""

    @pytest.mark.unit
    def test_default_device_path(self):
        gpu = HostGpu(index=3, name="NVIDIA L4", memory_total="23034 MiB")
        assert gpu.device_path == "/dev/nvidia3"

    @pytest.mark.unit
    def test_explicit_device_path(self):
        gpu = HostGpu(index=0, name="x", device_path="/dev/nvidia-gpu0")
        assert gpu.device_path == "/dev/nvidia-gpu0"

    @pytest.mark.unit
    def test_is_immutable(self):
        gpu = HostGpu(index=0, name="x")
        with pytest.raises(AttributeError):
            gpu.index = 1

    @pytest.mark.unit
    def test_auxiliary_priority_order(self):
        assert [d.label for d in DEFAULT_AUXILIARY_DEVICES] == [
            "control", "unified-memory", "unified-memory-tools", "mode-set",
        ]


class TestHostDeviceScanner:
    """Tests for HostDeviceScanner against a fake host tree."""

    @pytest.mark.unit
    def test_exists(self, host_root):
        host_root.add("/dev/nvidia0")
        scanner = HostDeviceScanner(host_root.path)

        assert scanner.exists("/dev/nvidia0") is True
        assert scanner.exists("/dev/nvidia1") is False

    @pytest.mark.unit
    def test_capability_entries_sorted(self, host_root):
        host_root.add(
            "/dev/nvidia-caps/nvidia-cap2",
            "/dev/nvidia-caps/nvidia-cap1",
            "/dev/nvidia-caps/README",
        )
        scanner = HostDeviceScanner(host_root.path)

        assert scanner.capability_directory_exists() is True
        assert scanner.capability_entries() == [
            "/dev/nvidia-caps/nvidia-cap1",
            "/dev/nvidia-caps/nvidia-cap2",
        ]

    @pytest.mark.unit
    def test_no_capability_directory(self, host_root):
        scanner = HostDeviceScanner(host_root.path)

        assert scanner.capability_directory_exists() is False
        assert scanner.capability_entries() == []

    @pytest.mark.unit
    def test_auxiliary_status(self, host_root):
        host_root.add("/dev/nvidiactl", "/dev/nvidia-uvm")
        scanner = HostDeviceScanner(host_root.path)

        status = {device.label: present for device, present in scanner.auxiliary_status()}

        assert status == {
            "control": True,
            "unified-memory": True,
            "unified-memory-tools": False,
            "mode-set": False,
        }

    @pytest.mark.unit
    def test_relative_path_does_not_exist(self, host_root):
        host_root.add("/dev/nvidia0")
        scanner = HostDeviceScanner(host_root.path)

        assert scanner.exists("nvidia0") is False
        assert scanner.exists("dev/nvidia0") is False

    @pytest.mark.unit
    def test_relative_capability_directory(self, host_root):
        scanner = HostDeviceScanner(host_root.path, capability_directory="nvidia-caps")

        assert scanner.capability_directory_exists() is False
        assert scanner.capability_entries() == []

    @pytest.mark.unit
    def test_planning_gpu_with_relative_device_path(self, host_root):
        from lxc_cuda.planner import GpuSelection, PassthroughPlanner

        host_root.add("/dev/nvidiactl")
        scanner = HostDeviceScanner(host_root.path)
        planner = PassthroughPlanner(exists=scanner.exists)

        plan = planner.plan([HostGpu(0, "x", device_path="nvidia0")], GpuSelection.all())

        assert plan.primary_directives == ()
        assert [d.path for d in plan.directives] == ["/dev/nvidiactl"]

    @pytest.mark.unit
    def test_scanner_feeds_planner(self, host_root, sample_gpus):
        from lxc_cuda.planner import GpuSelection, PassthroughPlanner

        host_root.add("/dev/nvidia0", "/dev/nvidiactl", "/dev/nvidia-caps/nvidia-cap1")
        scanner = HostDeviceScanner(host_root.path)
        planner = PassthroughPlanner(exists=scanner.exists)

        plan = planner.plan(sample_gpus, GpuSelection.all(), capability_entries=scanner.capability_entries())

        assert [d.path for d in plan.directives] == [
            "/dev/nvidia0",
            "/dev/nvidiactl",
            "/dev/nvidia-caps/nvidia-cap1",
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
