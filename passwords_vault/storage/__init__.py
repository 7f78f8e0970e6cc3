"""Storage collaborators for VaultSession."""

from .base import VaultStorage
from .memory import MemoryStorage
from .sqlite import SQLiteStorage

__all__ = [
    "VaultStorage",
    "MemoryStorage",
    "SQLiteStorage",
]
