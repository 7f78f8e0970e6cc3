"""PassWords Vault — password-derived encrypted credential vaults.

Security Note (Threat Model):
    Account fields are decrypted in process memory while a session is
    logged in. The derived key and cached password are overwritten on
    logout, but a memory dump of a live session can still expose them.
    This is an accepted limitation; mitigation requires OS-level isolation
    which is out of scope.
"""

from .version import __version__
from .conf import VaultConfig
from .crypto import SymmetricCipher, derive_key
from .exceptions import (
    VaultError,
    ValidationError,
    NotFoundError,
    AuthError,
    CryptoError,
    StorageError,
    StateError,
)
from .hashing import hash_password, hash_bytes, verify_password
from .generator import random_string
from .models import Vault, Account, BackupPackage
from .session import VaultSession, LoginResult
from .state import SessionStatus
from .storage import VaultStorage, MemoryStorage, SQLiteStorage
from .twofactor import TotpProvider

__all__ = [
    "__version__",
    "VaultConfig",
    "SymmetricCipher",
    "derive_key",
    "VaultError",
    "ValidationError",
    "NotFoundError",
    "AuthError",
    "CryptoError",
    "StorageError",
    "StateError",
    "hash_password",
    "hash_bytes",
    "verify_password",
    "random_string",
    "Vault",
    "Account",
    "BackupPackage",
    "VaultSession",
    "LoginResult",
    "SessionStatus",
    "VaultStorage",
    "MemoryStorage",
    "SQLiteStorage",
    "TotpProvider",
]
