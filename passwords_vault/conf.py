"""
Vault Configuration — validated settings for hashing, key derivation and sessions.

Reads overrides from environment variables in the format:
    PASSWORDS_HASH_ITERATIONS = <int>
    PASSWORDS_KDF_ITERATIONS = <int>
    PASSWORDS_HASH_ALGORITHM = sha256 | sha1 | sha512
    PASSWORDS_CIPHER_BACKEND = aes-cbc | aesgcm
    PASSWORDS_LOCKOUT_THRESHOLD = <int>
    PASSWORDS_DATABASE = <path to the SQLite file>

Security Note:
    Never log key material. Only log vault names, ids and counts.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("passwords.vault")

DEFAULT_HASH_ITERATIONS = 50000
DEFAULT_HASH_LENGTH = 32
DEFAULT_KDF_ITERATIONS = 10000
DEFAULT_KEY_SIZE = 32  # AES-256
DEFAULT_LOCKOUT_THRESHOLD = 10

SUPPORTED_HASH_ALGORITHMS = ("sha256", "sha1", "sha512")
SUPPORTED_CIPHER_BACKENDS = ("aes-cbc", "aesgcm")

_ENV_PREFIX = "PASSWORDS_"
_INT_SETTINGS = (
    "hash_iterations",
    "hash_length",
    "kdf_iterations",
    "key_size",
    "lockout_threshold",
    "max_second_factor_attempts",
    "totp_valid_window",
)
_STR_SETTINGS = (
    "hash_algorithm",
    "cipher_backend",
    "totp_issuer",
)


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    hash_iterations: int = Field(default=DEFAULT_HASH_ITERATIONS, ge=1)
    hash_length: int = Field(default=DEFAULT_HASH_LENGTH, ge=1)
    kdf_iterations: int = Field(default=DEFAULT_KDF_ITERATIONS, ge=1)
    key_size: int = Field(default=DEFAULT_KEY_SIZE)
    hash_algorithm: str = Field(default="sha256")
    cipher_backend: str = Field(default="aes-cbc")
    lockout_threshold: int = Field(default=DEFAULT_LOCKOUT_THRESHOLD, ge=0)
    max_second_factor_attempts: int = Field(default=5, ge=1)
    totp_valid_window: int = Field(default=1, ge=0, le=10)
    totp_issuer: str = Field(default="PassWords")
    database_path: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        """Validate the PBKDF2 HMAC digest is supported."""
        v = v.lower()
        if v not in SUPPORTED_HASH_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {v}")
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @model_validator(mode="after")
    def validate_key_size(self) -> "VaultConfig":
        """Ensure key_size is a valid AES key length."""
        if self.key_size not in (16, 24, 32):
            raise ValueError(
                f"key_size must be 16, 24 or 32 bytes, got {self.key_size}"
            )
        return self

    @classmethod
    def from_env(cls, **overrides) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Keyword overrides win over the environment.

        Returns:
            Populated VaultConfig instance.
        """
        values: dict = {}
        for name in _INT_SETTINGS:
            raw = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = int(raw)
        for name in _STR_SETTINGS:
            raw = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        database = os.environ.get(f"{_ENV_PREFIX}DATABASE")
        if database:
            values["database_path"] = database
        values.update(overrides)
        logger.debug(
            "Loaded vault config from environment: %s", sorted(values.keys())
        )
        return cls(**values)
