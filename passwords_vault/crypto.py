"""
Vault Crypto Core — Key derivation and per-field symmetric encryption.

Implements the session cipher used for every encrypted account field:
- Key derivation: PBKDF2-HMAC(password, vault salt) → 256-bit key
- ``aes-cbc`` backend: AES-CBC + PKCS7 → [IV 16B][ciphertext]
- ``aesgcm`` backend: AES-GCM → [nonce 12B][ciphertext + tag 16B]

Security Note:
    Never log plaintext, ciphertext or key values.
    A fresh random IV is drawn for every encryption; encrypting the same
    plaintext twice yields different outputs.
"""
import os
import base64
import binascii
import logging
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .conf import DEFAULT_KDF_ITERATIONS, DEFAULT_KEY_SIZE
from .exceptions import CryptoError, ValidationError
from .hashing import pbkdf2

logger = logging.getLogger("passwords.vault")

BLOCK_SIZE = 16  # AES block, also the CBC IV size
GCM_NONCE_SIZE = 12  # 96-bit nonce
GCM_TAG_SIZE = 16
MIN_SALT_LENGTH = 8
VALID_KEY_SIZES = (16, 24, 32)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(
    password: Union[str, bytes],
    salt: str,
    iterations: int = DEFAULT_KDF_ITERATIONS,
    key_size: int = DEFAULT_KEY_SIZE,
    algorithm: str = "sha256",
) -> bytes:
    """Derive a symmetric key from a vault password and the vault salt.

    Args:
        password: Vault password (text is UTF-8 encoded).
        salt: Vault salt, at least 8 characters (UTF-8 encoded).
        iterations: PBKDF2 rounds; tuned for interactive unlocks.
        key_size: Key length in bytes.
        algorithm: HMAC digest name.

    Returns:
        ``key_size`` bytes of key material.

    Raises:
        ValidationError: On an invalid key size, short salt, empty password
            or non-positive iteration count.
    """
    if key_size <= 0:
        raise ValidationError("Could not create key: Invalid key size.")
    if salt is None or len(salt) < MIN_SALT_LENGTH:
        raise ValidationError("Could not create key: Salt is too short.")
    if not password:
        raise ValidationError("Could not create key: Password can't be empty.")
    if iterations <= 0:
        raise ValidationError("Could not create key: Invalid iterations count.")
    if isinstance(password, str):
        password = password.encode("utf-8")
    return pbkdf2(bytes(password), salt.encode("utf-8"), iterations, key_size, algorithm)


# ---------------------------------------------------------------------------
# Symmetric cipher
# ---------------------------------------------------------------------------

class SymmetricCipher:
    """Encrypts opaque byte payloads under one derived key.

    The key lives in a ``bytearray`` so ``wipe()`` can overwrite it in place
    when the owning session logs out.
    """

    def __init__(self, key: bytes, backend: str = "aes-cbc"):
        if key is None:
            raise ValidationError("Invalid key, key is null.")
        if len(key) not in VALID_KEY_SIZES:
            raise ValidationError("Invalid key, key has an invalid size.")
        backend = backend.lower()
        if backend not in ("aes-cbc", "aesgcm"):
            raise ValidationError(f"Unsupported cipher backend: {backend}")
        self._key = bytearray(key)
        self._backend = backend
        self._wiped = False

    @classmethod
    def from_password(
        cls,
        password: Union[str, bytes],
        salt: str,
        iterations: int = DEFAULT_KDF_ITERATIONS,
        key_size: int = DEFAULT_KEY_SIZE,
        algorithm: str = "sha256",
        backend: str = "aes-cbc",
    ) -> "SymmetricCipher":
        """Derive the key from ``password`` and ``salt`` and build a cipher."""
        key = derive_key(password, salt, iterations, key_size, algorithm)
        return cls(key, backend=backend)

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def iv_size(self) -> int:
        return BLOCK_SIZE if self._backend == "aes-cbc" else GCM_NONCE_SIZE

    @property
    def wiped(self) -> bool:
        return self._wiped

    def _current_key(self) -> bytes:
        if self.wiped:
            raise CryptoError("Cipher key has been wiped")
        return bytes(self._key)

    def wipe(self) -> None:
        """Overwrite the key material with zeros."""
        for i in range(len(self._key)):
            self._key[i] = 0
        self._wiped = True

    # -- bytes -------------------------------------------------------------

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt ``data`` with a fresh IV.

        Returns:
            ``IV || ciphertext`` bytes.
        """
        if data is None:
            raise ValidationError("Could not encrypt data: Data can't be null.")
        key = self._current_key()
        iv = os.urandom(self.iv_size)
        if self._backend == "aesgcm":
            return iv + AESGCM(key).encrypt(iv, bytes(data), None)
        padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
        padded = padder.update(bytes(data)) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return iv + encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, blob: bytes) -> bytes:
        """Split the leading IV from ``blob`` and decrypt the remainder.

        Raises:
            CryptoError: If the blob is undersized, corrupt, or was not made
                with this key.
        """
        if blob is None:
            raise ValidationError("Could not decrypt data: Data can't be null.")
        key = self._current_key()
        blob = bytes(blob)
        if self._backend == "aesgcm":
            _min = GCM_NONCE_SIZE + GCM_TAG_SIZE
            if len(blob) < _min:
                raise CryptoError(
                    f"ciphertext too short: {len(blob)} bytes (minimum {_min})"
                )
            try:
                return AESGCM(key).decrypt(
                    blob[:GCM_NONCE_SIZE], blob[GCM_NONCE_SIZE:], None
                )
            except InvalidTag as err:
                raise CryptoError("Ciphertext failed authentication") from err
        if len(blob) < BLOCK_SIZE:
            raise CryptoError(
                f"ciphertext too short: {len(blob)} bytes (minimum {BLOCK_SIZE})"
            )
        iv, payload = blob[:BLOCK_SIZE], blob[BLOCK_SIZE:]
        try:
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(payload) + decryptor.finalize()
            unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as err:
            raise CryptoError(f"Could not decrypt data: {err}") from err

    # -- text --------------------------------------------------------------

    def encrypt_text(self, text: str) -> str:
        """Encrypt UTF-8 ``text`` and return base64 text."""
        if text is None:
            raise ValidationError("Could not encrypt text: Text can't be null.")
        return base64.b64encode(self.encrypt(text.encode("utf-8"))).decode("ascii")

    def decrypt_text(self, token: str) -> str:
        """Decrypt base64 ``token`` produced by ``encrypt_text``."""
        if token is None:
            raise ValidationError("Could not decrypt text: Text can't be null.")
        try:
            blob = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as err:
            raise CryptoError("Ciphertext is not valid base64") from err
        plaintext = self.decrypt(blob)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as err:
            raise CryptoError("Decrypted data is not valid UTF-8") from err

    def __repr__(self) -> str:
        state = "wiped" if self.wiped else "active"
        return f"<SymmetricCipher backend={self._backend} {state}>"
