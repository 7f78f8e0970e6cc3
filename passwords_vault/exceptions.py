"""
Vault Errors — exception taxonomy shared by every vault component.

Session operations report business outcomes (wrong password, lockout,
unknown vault) through result values; these exceptions are reserved for
programming errors and for failures of the crypto and storage layers.
"""


class VaultError(Exception):
    """Base class for every error raised by passwords_vault."""


class ValidationError(VaultError, ValueError):
    """Malformed or empty argument given to hashing, derivation or encryption."""


class NotFoundError(VaultError, KeyError):
    """Unknown vault or account id/name."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable.
        return str(self.args[0]) if self.args else ""


class AuthError(VaultError):
    """Wrong password, wrong second-factor code or lockout exceeded."""


class CryptoError(VaultError):
    """Undersized or corrupt ciphertext, or a key that cannot decrypt it."""


class StorageError(VaultError):
    """Failure reported by the persistence layer."""


class StateError(VaultError):
    """Operation attempted from a session state that forbids it."""
