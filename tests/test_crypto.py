"""
Tests for hashing, key derivation and the symmetric cipher.

Tests cover:
- Password hash format, verification and argument validation
- Constant-size salt prefix and tamper detection
- Key derivation argument validation and determinism
- AES-CBC and AES-GCM round trips, fresh IVs and corrupt blobs
- Text wrappers and key wiping
"""
import base64
import random

import pytest

from passwords_vault import CryptoError, SymmetricCipher, ValidationError
from passwords_vault.crypto import BLOCK_SIZE, GCM_NONCE_SIZE, derive_key
from passwords_vault.hashing import SALT_SIZE, hash_bytes, hash_password, verify_password

ITERATIONS = 1000
SALT = "ATestDB$*(!@#$)TestDBa"


@pytest.fixture(params=["aes-cbc", "aesgcm"])
def cipher(request):
    return SymmetricCipher.from_password("test123", SALT, iterations=100, backend=request.param)


# --- Hashing ---

class TestHashing:
    """Tests for salted PBKDF2 password hashes."""

    def test_hash_layout(self):
        """Hash is base64 of 16-byte salt plus digest of the requested length."""
        encoded = hash_password("test123", iterations=ITERATIONS, length=32)
        blob = base64.b64decode(encoded)
        assert len(blob) == SALT_SIZE + 32

    def test_verify_matches(self):
        encoded = hash_password("test123", iterations=ITERATIONS)
        assert verify_password(encoded, "test123", iterations=ITERATIONS) is True

    def test_verify_rejects_wrong_password(self):
        encoded = hash_password("test123", iterations=ITERATIONS)
        assert verify_password(encoded, "test1234", iterations=ITERATIONS) is False

    def test_single_byte_change_fails(self):
        """Flipping any one character of the input breaks verification."""
        value = "correct horse"
        encoded = hash_password(value, iterations=ITERATIONS)
        for i in range(len(value)):
            changed = value[:i] + chr(ord(value[i]) ^ 1) + value[i + 1:]
            assert verify_password(encoded, changed, iterations=ITERATIONS) is False

    def test_fresh_salt_per_hash(self):
        first = hash_password("test123", iterations=ITERATIONS)
        second = hash_password("test123", iterations=ITERATIONS)
        assert first != second

    def test_deterministic_with_seeded_rng(self):
        first = hash_password("test123", iterations=ITERATIONS, rng=random.Random(7))
        second = hash_password("test123", iterations=ITERATIONS, rng=random.Random(7))
        assert first == second

    def test_iterations_must_match(self):
        encoded = hash_password("test123", iterations=ITERATIONS)
        assert verify_password(encoded, "test123", iterations=ITERATIONS + 1) is False

    def test_bytes_input_and_raw_blob(self):
        blob = hash_bytes(b"\x00\x01secret", iterations=ITERATIONS, length=16)
        assert len(blob) == SALT_SIZE + 16
        assert verify_password(blob, b"\x00\x01secret", iterations=ITERATIONS) is True

    def test_sha1_algorithm(self):
        encoded = hash_password("test123", iterations=ITERATIONS, algorithm="sha1")
        assert verify_password(encoded, "test123", iterations=ITERATIONS, algorithm="sha1")
        assert not verify_password(encoded, "test123", iterations=ITERATIONS)

    @pytest.mark.parametrize("kwargs", [
        {"value": ""},
        {"value": "x", "iterations": 0},
        {"value": "x", "iterations": -5},
        {"value": "x", "length": 0},
    ])
    def test_hash_invalid_arguments(self, kwargs):
        with pytest.raises(ValidationError):
            hash_password(**kwargs)

    def test_verify_empty_input_raises(self):
        encoded = hash_password("test123", iterations=ITERATIONS)
        with pytest.raises(ValidationError):
            verify_password(encoded, "", iterations=ITERATIONS)

    @pytest.mark.parametrize("encoded", ["", "not base64!!", base64.b64encode(b"short").decode()])
    def test_verify_malformed_hash_is_false(self, encoded):
        assert verify_password(encoded, "test123", iterations=ITERATIONS) is False


# --- Key derivation ---

class TestKeyDerivation:
    """Tests for PBKDF2 key derivation."""

    def test_key_size(self):
        assert len(derive_key("test123", SALT, iterations=100)) == 32
        assert len(derive_key("test123", SALT, iterations=100, key_size=16)) == 16

    def test_deterministic(self):
        assert derive_key("test123", SALT, iterations=100) == derive_key("test123", SALT, iterations=100)

    def test_salt_changes_key(self):
        assert derive_key("test123", SALT, iterations=100) != derive_key("test123", SALT + "x", iterations=100)

    @pytest.mark.parametrize("kwargs", [
        {"password": "", "salt": SALT},
        {"password": "p", "salt": "short"},
        {"password": "p", "salt": SALT, "iterations": 0},
        {"password": "p", "salt": SALT, "key_size": 0},
    ])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValidationError):
            derive_key(**kwargs)


# --- Symmetric cipher ---

class TestSymmetricCipher:
    """Tests for the per-field cipher."""

    @pytest.mark.parametrize("data", [b"", b"a", b"x" * 16, b"\x00" * 33, bytes(range(256))])
    def test_round_trip(self, cipher, data):
        assert cipher.decrypt(cipher.encrypt(data)) == data

    def test_fresh_iv_per_call(self, cipher):
        assert cipher.encrypt(b"same") != cipher.encrypt(b"same")

    def test_iv_prefix_size(self, cipher):
        blob = cipher.encrypt(b"")
        if cipher.backend == "aes-cbc":
            assert len(blob) == BLOCK_SIZE + BLOCK_SIZE
        else:
            assert len(blob) == GCM_NONCE_SIZE + 16

    def test_blob_shorter_than_iv(self, cipher):
        with pytest.raises(CryptoError):
            cipher.decrypt(b"\x00" * 5)

    def test_cbc_unaligned_payload(self):
        cipher = SymmetricCipher(b"k" * 32)
        blob = cipher.encrypt(b"hello")
        with pytest.raises(CryptoError):
            cipher.decrypt(blob[:-3])

    def test_gcm_wrong_key(self):
        first = SymmetricCipher(b"a" * 32, backend="aesgcm")
        second = SymmetricCipher(b"b" * 32, backend="aesgcm")
        with pytest.raises(CryptoError):
            second.decrypt(first.encrypt(b"secret"))

    def test_gcm_tampered(self):
        cipher = SymmetricCipher(b"a" * 32, backend="aesgcm")
        blob = bytearray(cipher.encrypt(b"secret"))
        blob[-1] ^= 0xFF
        with pytest.raises(CryptoError):
            cipher.decrypt(bytes(blob))

    def test_text_round_trip(self, cipher):
        token = cipher.encrypt_text("pässwörd ✓")
        base64.b64decode(token)
        assert cipher.decrypt_text(token) == "pässwörd ✓"

    def test_text_invalid_base64(self, cipher):
        with pytest.raises(CryptoError):
            cipher.decrypt_text("%%%")

    def test_null_inputs(self, cipher):
        with pytest.raises(ValidationError):
            cipher.encrypt(None)
        with pytest.raises(ValidationError):
            cipher.encrypt_text(None)

    @pytest.mark.parametrize("key", [None, b"", b"x" * 10])
    def test_invalid_key(self, key):
        with pytest.raises(ValidationError):
            SymmetricCipher(key)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            SymmetricCipher(b"k" * 32, backend="rot13")

    def test_wipe_zeroes_key(self, cipher):
        cipher.wipe()
        assert cipher.wiped
        assert not any(cipher._key)
        with pytest.raises(CryptoError):
            cipher.encrypt(b"data")
