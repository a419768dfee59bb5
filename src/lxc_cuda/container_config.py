"""
lxc-cuda - Per-container configuration file

Proxmox keeps one text file per container, keyed by its id. Passthrough
settings are appended as a block; the file is backed up first.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from common.exceptions import ContainerConfigNotFoundError
from utils.atomic_write import atomic_append_text, safe_backup

from .pct import validate_ctid

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path("/etc/pve/lxc")
PASSTHROUGH_MARKER = "# NVIDIA GPU Passthrough Configuration"
BACKUP_SUFFIX = ".backup"


class LxcConfigFile:
    """The configuration file of one container."""

    def __init__(self, ctid: Union[str, int], config_dir: Path = DEFAULT_CONFIG_DIR):
        self.ctid = validate_ctid(ctid)
        self.config_dir = Path(config_dir)

    @property
    def path(self) -> Path:
        return self.config_dir / f"{self.ctid}.conf"

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + BACKUP_SUFFIX)

    def exists(self) -> bool:
        return self.path.is_file()

    def _require(self) -> None:
        if not self.exists():
            raise ContainerConfigNotFoundError(self.ctid, str(self.path))

    def read(self) -> str:
        self._require()
        return self.path.read_text(encoding="utf-8")

    def has_passthrough_block(self) -> bool:
        """True if a passthrough block was appended on an earlier run."""
        return PASSTHROUGH_MARKER in self.read()

    def backup(self) -> Path:
        """Copy the current file to ``<ctid>.conf.backup``."""
        self._require()
        backup = safe_backup(self.path, BACKUP_SUFFIX)
        logger.info(f"Backed up {self.path} to {backup}")
        return backup

    def append(self, block: str) -> None:
        """Append a rendered block to the file."""
        self._require()
        atomic_append_text(self.path, block)
        logger.info(f"Updated {self.path}")
