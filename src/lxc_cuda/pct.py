"""
lxc-cuda - Proxmox container CLI wrapper

Runs the host's ``pct`` tool for the few lifecycle steps provisioning
needs: stop/start, status polling, exec and listing.
"""

from __future__ import annotations

import logging
import re
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from common.decorators import retry
from common.exceptions import (
    ContainerCommandError,
    ContainerNotRunningError,
    DependencyError,
    InvalidConfigError,
)

logger = logging.getLogger(__name__)

_CTID_RE = re.compile(r"^[0-9]+$")


def validate_ctid(ctid: Union[str, int]) -> str:
    """
    Normalise a container id.

    Raises:
        InvalidConfigError: If the id is not purely numeric
    """
    text = str(ctid).strip()
    if not _CTID_RE.match(text):
        raise InvalidConfigError("ctid", ctid, "container id must be numeric")
    return text


@dataclass
class PctContainer:
    """One row of ``pct list``."""
    ctid: str
    status: str
    name: str = ""


class PctClient:
    """
    Runs ``pct`` subcommands.

    Every call is synchronous; timeouts apply per command.
    """

    def __init__(self, binary: str = "pct", timeout: int = 120):
        self.binary = binary
        self.timeout = timeout

    def _run(self, args: Sequence[str], check: bool = True,
             timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        command = [self.binary, *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                capture_output=True, text=True,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError:
            raise DependencyError(self.binary, package="pve-container")
        except subprocess.TimeoutExpired:
            raise ContainerCommandError(" ".join(command), -1, "timed out")

        if check and result.returncode != 0:
            raise ContainerCommandError(" ".join(command), result.returncode, result.stderr)
        return result

    def status(self, ctid: Union[str, int]) -> str:
        """Return the container status, e.g. "running" or "stopped"."""
        ctid = validate_ctid(ctid)
        result = self._run(["status", ctid])
        # Output: "status: running"
        _, _, status = result.stdout.partition(":")
        return status.strip() or "unknown"

    def start(self, ctid: Union[str, int]) -> None:
        ctid = validate_ctid(ctid)
        self._run(["start", ctid])
        logger.info(f"Started container {ctid}")

    def stop(self, ctid: Union[str, int]) -> bool:
        """
        Stop a container. A failure (e.g. already stopped) is tolerated.

        Returns:
            True if pct reported success.
        """
        ctid = validate_ctid(ctid)
        result = self._run(["stop", ctid], check=False)
        if result.returncode != 0:
            logger.debug(f"pct stop {ctid} returned {result.returncode}: {result.stderr.strip()}")
            return False
        logger.info(f"Stopped container {ctid}")
        return True

    def wait_until_running(self, ctid: Union[str, int], attempts: int = 10,
                           interval: float = 1.0) -> None:
        """
        Poll until the container reports running.

        Raises:
            ContainerNotRunningError: If it is still not running after
                all attempts
        """
        ctid = validate_ctid(ctid)

        @retry(max_attempts=attempts, delay=interval, backoff=1.0,
               exceptions=(ContainerNotRunningError,))
        def poll():
            status = self.status(ctid)
            if status != "running":
                raise ContainerNotRunningError(ctid, status)

        poll()

    def restart(self, ctid: Union[str, int], settle_seconds: float = 2.0) -> None:
        """Stop, pause briefly, start and wait for the container."""
        ctid = validate_ctid(ctid)
        logger.info(f"Restarting container {ctid} to apply GPU configuration")
        self.stop(ctid)
        if settle_seconds > 0:
            time.sleep(settle_seconds)
        self.start(ctid)
        self.wait_until_running(ctid)

    def exec(self, ctid: Union[str, int], *command: str,
             check: bool = False) -> subprocess.CompletedProcess:
        """Run a command inside the container."""
        ctid = validate_ctid(ctid)
        return self._run(["exec", ctid, "--", *command], check=check)

    def list_containers(self) -> List[PctContainer]:
        """
        Parse ``pct list``.

        Example output:
            VMID       Status     Lock         Name
            105        running                 cuda-dev
        """
        result = self._run(["list"])
        containers = []
        for line in result.stdout.splitlines()[1:]:
            parts = line.split()
            if len(parts) < 2 or not _CTID_RE.match(parts[0]):
                continue
            name = parts[-1] if len(parts) >= 3 else ""
            containers.append(PctContainer(ctid=parts[0], status=parts[1], name=name))
        return containers

    def latest_ctid(self) -> Optional[str]:
        """Id of the last listed container (the most recently created one)."""
        containers = self.list_containers()
        return containers[-1].ctid if containers else None
