"""
lxc-cuda Utility Modules

File helpers for mutating container configuration safely.
"""

from .atomic_write import (
    atomic_write_text,
    atomic_append_text,
    safe_backup,
)

__all__ = [
    "atomic_write_text",
    "atomic_append_text",
    "safe_backup",
]
