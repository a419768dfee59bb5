"""
lxc-cuda - CUDA toolkit package and repository lookup

Static mappings from a CUDA release and the container's OS to the apt
package and NVIDIA repository that provide it.
"""

from __future__ import annotations

import re
from typing import Dict, Tuple

from common.exceptions import InvalidConfigError

DEFAULT_CUDA_VERSION = "12.8"
DEFAULT_OS = ("debian", "12")
KEYRING_PACKAGE = "cuda-keyring_1.1-1_all.deb"
REPOSITORY_BASE_URL = "https://developer.download.nvidia.com/compute/cuda/repos"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(?:\.\d+)?$")

# os id -> (version -> repository, fallback repository)
_REPOSITORIES: Dict[str, Tuple[Dict[str, str], str]] = {
    "ubuntu": ({
        "24.04": "ubuntu2404",
        "22.04": "ubuntu2204",
        "20.04": "ubuntu2004",
    }, "ubuntu2204"),
    "debian": ({
        "12": "debian12",
        "11": "debian11",
    }, "debian12"),
}
_FALLBACK_REPOSITORY = "debian12"


def split_version(version: str) -> Tuple[int, int]:
    """
    Split "12.8" into (12, 8).

    Raises:
        InvalidConfigError: If the version is not MAJOR.MINOR[.PATCH]
    """
    match = _VERSION_RE.match(str(version).strip())
    if not match:
        raise InvalidConfigError("cuda_version", version, "expected MAJOR.MINOR, e.g. 12.8")
    return int(match.group(1)), int(match.group(2))


def toolkit_package(version: str = DEFAULT_CUDA_VERSION) -> str:
    """apt package for a CUDA release: "12.8" -> "cuda-toolkit-12-8"."""
    major, minor = split_version(version)
    return f"cuda-toolkit-{major}-{minor}"


def repository_for(os_id: str, os_version: str) -> str:
    """NVIDIA repository name for a distribution, with per-OS fallbacks."""
    versions, fallback = _REPOSITORIES.get(
        os_id.strip().lower(), ({}, _FALLBACK_REPOSITORY)
    )
    return versions.get(os_version.strip(), fallback)


def keyring_url(repository: str, arch: str = "x86_64") -> str:
    return f"{REPOSITORY_BASE_URL}/{repository}/{arch}/{KEYRING_PACKAGE}"


def parse_os_release(text: str) -> Tuple[str, str]:
    """
    Extract (ID, VERSION_ID) from /etc/os-release content.

    Content without an ID is treated as Debian 12.
    """
    values = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        values[key.strip()] = value.strip().strip('"').strip("'")

    if not values.get("ID"):
        return DEFAULT_OS
    return values["ID"], values.get("VERSION_ID", "")
