#!/usr/bin/env python3
"""
lxc-cuda - Host GPU Query

Enumerates NVIDIA GPUs on the Proxmox host through nvidia-smi. The result
is a fresh snapshot on every call; nothing is cached between runs.
"""

import csv
import io
import json
import logging
import shutil
import subprocess
from dataclasses import asdict
from typing import List

from common.exceptions import GpuQueryError, NvidiaDriverNotFoundError

from .devices import HostGpu

logger = logging.getLogger(__name__)

QUERY_FIELDS = ("index", "name", "memory.total")


def parse_gpu_csv(text: str) -> List[HostGpu]:
    """
    Parse ``nvidia-smi --query-gpu=index,name,memory.total`` CSV output.

    Rows that do not carry a numeric index are logged and skipped.

    Example input:
        0, NVIDIA GeForce RTX 4090, 24564 MiB
        1, NVIDIA RTX A4000, 16376 MiB
    """
    gpus = []
    reader = csv.reader(io.StringIO(text), skipinitialspace=True)
    for row in reader:
        if not row or not any(cell.strip() for cell in row):
            continue

        index_text = row[0].strip()
        if not index_text.isdigit():
            logger.warning(f"Ignoring unparseable nvidia-smi row: {','.join(row)}")
            continue

        name = row[1].strip() if len(row) > 1 else ""
        memory_total = row[2].strip() if len(row) > 2 else ""
        gpus.append(HostGpu(index=int(index_text), name=name, memory_total=memory_total))

    gpus.sort(key=lambda gpu: gpu.index)
    return gpus


class NvidiaSmi:
    """Thin wrapper over the host's nvidia-smi."""

    def __init__(self, binary: str = "nvidia-smi", timeout: int = 30):
        self.binary = binary
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        command = [self.binary, *args]
        try:
            return subprocess.run(
                command,
                capture_output=True, text=True, timeout=self.timeout,
            )
        except FileNotFoundError:
            raise NvidiaDriverNotFoundError(self.binary)
        except subprocess.TimeoutExpired as e:
            raise GpuQueryError(f"{self.binary} timed out after {self.timeout}s", cause=e)

    def is_installed(self) -> bool:
        return shutil.which(self.binary) is not None

    def check_host(self) -> None:
        """
        Verify the NVIDIA driver is usable on the host.

        Raises:
            NvidiaDriverNotFoundError: nvidia-smi is not installed
            GpuQueryError: nvidia-smi is installed but fails
        """
        if not self.is_installed():
            raise NvidiaDriverNotFoundError(self.binary)

        result = self._run()
        if result.returncode != 0:
            raise GpuQueryError(
                f"{self.binary} exited with status {result.returncode}: {result.stderr.strip()}"
            )
        logger.info("NVIDIA driver detected on host")

    def list_gpus(self) -> List[HostGpu]:
        """
        Enumerate host GPUs.

        Raises:
            GpuQueryError: If the query command fails
        """
        result = self._run(
            f"--query-gpu={','.join(QUERY_FIELDS)}",
            "--format=csv,noheader",
        )
        if result.returncode != 0:
            raise GpuQueryError(
                f"GPU listing exited with status {result.returncode}: {result.stderr.strip()}"
            )

        gpus = parse_gpu_csv(result.stdout)
        for gpu in gpus:
            logger.debug(f"Found GPU {gpu.index}: {gpu.name} ({gpu.memory_total})")
        return gpus

    def gpu_count(self) -> int:
        return len(self.list_gpus())

    def to_json(self) -> str:
        """Export the current GPU list as JSON."""
        return json.dumps([asdict(gpu) for gpu in self.list_gpus()], indent=2)
