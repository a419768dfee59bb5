"""
Pytest configuration and shared fixtures for lxc-cuda tests.

Provides a fake /dev tree, sample GPUs and mocks for host commands.
No test runs nvidia-smi or pct for real.
"""

import os
import pytest
from unittest.mock import MagicMock, patch
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


ALL_NVIDIA_NODES = [
    "/dev/nvidia0",
    "/dev/nvidia1",
    "/dev/nvidiactl",
    "/dev/nvidia-uvm",
    "/dev/nvidia-uvm-tools",
    "/dev/nvidia-modeset",
]


# ============ Device Fixtures ============

@pytest.fixture
def exists_from():
    """Build an existence check that only knows the given paths."""
    def factory(paths):
        present = set(paths)
        return lambda path: path in present
    return factory


@pytest.fixture
def host_root(tmp_path: Path):
    """
    A fake host filesystem root.

    Call ``host_root.add("/dev/nvidia0", ...)`` to create device nodes
    (plain files stand in for character devices).
    """
    root = tmp_path / "host"
    (root / "dev").mkdir(parents=True)

    class FakeHost:
        path = root

        def add(self, *device_paths):
            for device in device_paths:
                node = root / device.lstrip("/")
                node.parent.mkdir(parents=True, exist_ok=True)
                node.touch()
            return self

    return FakeHost()


@pytest.fixture
def sample_gpus():
    """Two GPUs as nvidia-smi would report them."""
    from lxc_cuda.devices import HostGpu

    return [
        HostGpu(index=0, name="NVIDIA GeForce RTX 4090", memory_total="24564 MiB"),
        HostGpu(index=1, name="NVIDIA RTX A4000", memory_total="16376 MiB"),
    ]


# ============ Subprocess Fixtures ============

@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for tests."""
    with patch('subprocess.run') as mock_run:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="",
            stderr="",
        )
        yield mock_run


@pytest.fixture
def completed():
    """Factory for subprocess.CompletedProcess stand-ins."""
    def factory(stdout="", returncode=0, stderr=""):
        return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)
    return factory


# ============ Container Fixtures ============

@pytest.fixture
def lxc_config_dir(tmp_path: Path) -> Path:
    """Temporary /etc/pve/lxc with a config for CT 105."""
    config_dir = tmp_path / "pve" / "lxc"
    config_dir.mkdir(parents=True)
    (config_dir / "105.conf").write_text(
        "arch: amd64\n"
        "cores: 4\n"
        "hostname: cuda-dev\n"
        "memory: 16384\n"
        "ostype: debian\n"
        "rootfs: local-lvm:vm-105-disk-0,size=50G\n"
    )
    return config_dir


@pytest.fixture
def settings(lxc_config_dir, host_root, monkeypatch):
    """Settings pointing at the temporary config dir and fake host."""
    from lxc_cuda.settings import load_settings

    for key in list(os.environ):
        if key.startswith("LXC_CUDA_"):
            monkeypatch.delenv(key)

    return load_settings(
        host={
            "lxc_config_dir": str(lxc_config_dir),
            "device_root": str(host_root.path),
        },
        passthrough={"restart_settle_seconds": 0},
    )


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "requires_root: marks tests that need root privileges"
    )
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )
    config.addinivalue_line(
        "markers", "integration: tests that exercise several components together"
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests based on environment."""
    skip_root = pytest.mark.skip(reason="Requires root privileges")

    for item in items:
        if "requires_root" in item.keywords:
            try:
                if os.getuid() != 0:
                    item.add_marker(skip_root)
            except AttributeError:
                # Windows doesn't have getuid
                item.add_marker(skip_root)
