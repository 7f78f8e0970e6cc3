"""
Vault Hashing — salted PBKDF2 password hashes.

Format (base64 text):
    [salt 16B][digest length B]

Verification re-derives the digest with the embedded salt and compares it
in constant time.

Security Note:
    Never log the input or the digest.
"""
import base64
import binascii
import hmac
import logging
import random
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .conf import DEFAULT_HASH_ITERATIONS, DEFAULT_HASH_LENGTH
from .exceptions import ValidationError
from .generator import random_bytes

logger = logging.getLogger("passwords.vault")

SALT_SIZE = 16

_ALGORITHMS = {
    "sha1": hashes.SHA1,
    "sha256": hashes.SHA256,
    "sha512": hashes.SHA512,
}


def get_algorithm(name: str) -> hashes.HashAlgorithm:
    """Return the ``cryptography`` hash instance for ``name``."""
    try:
        return _ALGORITHMS[name.lower()]()
    except KeyError:
        raise ValidationError(f"Unsupported hash algorithm: {name}") from None


def pbkdf2(
    value: bytes,
    salt: bytes,
    iterations: int,
    length: int,
    algorithm: str = "sha256",
) -> bytes:
    """Run PBKDF2-HMAC over ``value``; shared by hashing and key derivation."""
    kdf = PBKDF2HMAC(
        algorithm=get_algorithm(algorithm),
        length=length,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(value)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def hash_bytes(
    value: Union[str, bytes],
    iterations: int = DEFAULT_HASH_ITERATIONS,
    length: int = DEFAULT_HASH_LENGTH,
    algorithm: str = "sha256",
    rng: Optional[random.Random] = None,
) -> bytes:
    """Hash ``value`` and return the raw ``salt || digest`` blob.

    Raises:
        ValidationError: If value is empty, iterations <= 0 or length <= 0.
    """
    if value is None or len(value) == 0:
        raise ValidationError("Could not hash input: Input is empty.")
    if iterations <= 0:
        raise ValidationError("Could not hash input: Iterations can't be negative or 0.")
    if length <= 0:
        raise ValidationError("Could not hash input: Length can't be negative or 0.")
    salt = random_bytes(SALT_SIZE, rng)
    digest = pbkdf2(_to_bytes(value), salt, iterations, length, algorithm)
    return salt + digest


def hash_password(
    value: Union[str, bytes],
    iterations: int = DEFAULT_HASH_ITERATIONS,
    length: int = DEFAULT_HASH_LENGTH,
    algorithm: str = "sha256",
    rng: Optional[random.Random] = None,
) -> str:
    """Hash ``value`` and return base64 text of ``salt || digest``."""
    blob = hash_bytes(value, iterations, length, algorithm, rng)
    return base64.b64encode(blob).decode("ascii")


def verify_password(
    encoded: Union[str, bytes],
    value: Union[str, bytes],
    iterations: int = DEFAULT_HASH_ITERATIONS,
    algorithm: str = "sha256",
) -> bool:
    """Check ``value`` against a hash made by ``hash_password``/``hash_bytes``.

    ``encoded`` may be the base64 text or the raw blob.

    Returns:
        True on match. False on mismatch or on a malformed stored hash.

    Raises:
        ValidationError: If value is empty or iterations <= 0.
    """
    if value is None or len(value) == 0:
        raise ValidationError("Could not verify input: Input is empty.")
    if iterations <= 0:
        raise ValidationError("Could not verify input: Iterations can't be negative or 0.")
    if isinstance(encoded, str):
        try:
            blob = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            logger.debug("Stored password hash is not valid base64")
            return False
    else:
        blob = bytes(encoded or b"")
    if len(blob) <= SALT_SIZE:
        logger.debug("Stored password hash is too short: %d bytes", len(blob))
        return False
    salt, stored = blob[:SALT_SIZE], blob[SALT_SIZE:]
    candidate = pbkdf2(_to_bytes(value), salt, iterations, len(stored), algorithm)
    return hmac.compare_digest(candidate, stored)
