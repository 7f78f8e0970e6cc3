"""
Tests for backup packages and restore.

Tests cover:
- Backup requires a logged in session and writes ciphertext as stored
- Restore fidelity with the original password
- Restore naming rules and refusal while logged in
- Packages in the PascalCase layout of older releases, including SHA-1 derived ones
- Malformed and missing packages
"""
import base64
import hashlib

import orjson
import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from passwords_vault import (
    BackupPackage,
    LoginResult,
    MemoryStorage,
    NotFoundError,
    SymmetricCipher,
    ValidationError,
    VaultConfig,
    VaultSession,
)
from passwords_vault.backup import dumps_package, loads_package, read_package
from passwords_vault.hashing import hash_password


def _plain(accounts):
    return sorted(
        (a.title, a.username, a.password, a.description, a.type, a.two_factor_secret)
        for a in accounts
    )


@pytest.fixture
def populated(logged_in, make_account):
    logged_in.add(make_account(title="mail", username="me", password="pw1"))
    logged_in.add(make_account(title="bank", username="me2", password="pw2", two_factor_secret="JBSWY3DP"))
    return logged_in


@pytest.fixture
def backup_file(populated, tmp_path):
    destination = tmp_path / "test.pwdb"
    assert populated.backup(destination) is True
    return destination


class TestBackup:
    """Tests for writing backups."""

    def test_requires_login(self, vault, tmp_path):
        assert vault.backup(tmp_path / "x.pwdb") is False
        assert not (tmp_path / "x.pwdb").exists()

    def test_package_layout(self, backup_file, storage):
        data = orjson.loads(backup_file.read_bytes())
        assert set(data) == {"Database", "Accounts"}
        assert data["Database"]["Name"] == "TestDB"
        stored = storage.find_vault_by_name("TestDB")
        assert data["Database"]["Passhash"] == stored.passhash
        assert data["Database"]["Salt"] == stored.salt
        assert len(data["Accounts"]) == 2
        stored_accounts = {a.password for a in storage.list_accounts(stored.id)}
        assert {a["Password"] for a in data["Accounts"]} == stored_accounts

    def test_unwritable_destination(self, populated, tmp_path):
        assert populated.backup(tmp_path / "missing" / "dir" / "x.pwdb") is False


class TestRestore:
    """Tests for restoring packages."""

    def test_fidelity(self, populated, backup_file):
        before = _plain(populated.get_accounts())
        populated.logout()
        assert populated.restore(backup_file, "test") is True
        assert populated.login("test", "test123") is LoginResult.SUCCESS
        assert _plain(populated.get_accounts()) == before

    def test_restore_after_delete_keeps_name(self, populated, backup_file):
        before = _plain(populated.get_accounts())
        populated.logout()
        populated.delete_vault("TestDB")
        assert populated.restore(backup_file) is True
        assert populated.login("TestDB", "test123") is LoginResult.SUCCESS
        assert _plain(populated.get_accounts()) == before

    def test_default_name_on_collision(self, populated, backup_file, storage):
        populated.logout()
        assert populated.restore(backup_file) is True
        assert storage.find_vault_by_name("_TestDB") is not None
        assert populated.restore(backup_file) is False

    def test_explicit_name_taken(self, populated, backup_file):
        populated.logout()
        assert populated.restore(backup_file, "TestDB") is False

    def test_refused_while_logged_in(self, populated, backup_file):
        assert populated.restore(backup_file, "test") is False

    def test_restore_package_object(self, populated):
        package = populated.backup_package()
        populated.logout()
        assert populated.restore(package, "copy") is True
        assert populated.login("copy", "test123") is LoginResult.SUCCESS
        assert len(populated.get_accounts()) == 2

    def test_restored_ids_are_remapped(self, populated, backup_file, storage):
        source_id = populated._state.vault.id
        populated.logout()
        populated.restore(backup_file, "test")
        restored = storage.find_vault_by_name("test")
        assert restored.id != source_id
        assert len(storage.list_accounts(restored.id)) == 2
        assert len(storage.list_accounts(source_id)) == 2

    def test_second_factor_survives(self, logged_in, tmp_path):
        logged_in.enable_second_factor()
        secret = logged_in.second_factor_secret()
        logged_in.backup(tmp_path / "tfa.pwdb")
        logged_in.logout()
        logged_in.restore(tmp_path / "tfa.pwdb", "tfa")
        assert logged_in.login("tfa", "test123") is LoginResult.NEEDS_SECOND_FACTOR
        assert logged_in.complete_second_factor(logged_in.totp.generate_code(secret))

    def test_missing_file(self, vault, tmp_path):
        assert vault.restore(tmp_path / "nope.pwdb") is False
        with pytest.raises(NotFoundError):
            read_package(tmp_path / "nope.pwdb")

    @pytest.mark.parametrize("content", [
        b"not json",
        b"[]",
        b'{"Accounts": []}',
        b'{"Database": {"Name": "x", "Passhash": "abc", "Salt": "short"}}',
    ])
    def test_malformed(self, vault, tmp_path, content):
        path = tmp_path / "bad.pwdb"
        path.write_bytes(content)
        assert vault.restore(path) is False
        with pytest.raises(ValidationError):
            loads_package(content)


class TestLegacyPackage:
    """Packages written in the PascalCase layout with name-derived salts."""

    def test_restore_legacy_layout(self, session, config):
        salt = "ATestDB$*(!@#$)TestDBa"
        cipher = SymmetricCipher.from_password("test123", salt, iterations=config.kdf_iterations)
        package = {
            "Database": {
                "Id": 4,
                "Name": "TestDB",
                "Passhash": hash_password("test123", iterations=config.hash_iterations),
                "Salt": salt,
                "TwoFactorSecret": None,
            },
            "Accounts": [{
                "Id": 9,
                "DbID": 4,
                "Title": cipher.encrypt_text("testaccount"),
                "Username": cipher.encrypt_text("test"),
                "Password": cipher.encrypt_text("test123"),
                "Description": cipher.encrypt_text("This is an test account"),
                "Type": "test",
                "TwoFactorSecret": cipher.encrypt_text(""),
            }],
        }
        data = b"\xef\xbb\xbf" + orjson.dumps(package)
        parsed = loads_package(data)
        assert parsed.database.two_factor_secret == ""
        assert session.restore(parsed) is True
        assert session.login("TestDB", "test123") is LoginResult.SUCCESS
        [account] = session.get_accounts()
        assert account.title == "testaccount"
        assert account.password == "test123"
        assert account.type == "test"

    def test_snake_case_accepted(self):
        package = BackupPackage.model_validate({
            "database": {"name": "x", "passhash": "aGFzaA==", "salt": "12345678"},
            "accounts": None,
        })
        assert package.accounts == []
        assert loads_package(dumps_package(package)).database.name == "x"

    def test_restore_sha1_package(self, storage, config):
        """Hash and key derived with PBKDF2-HMAC-SHA1 open under ``hash_algorithm="sha1"``."""
        salt = "ATestDB$*(!@#$)TestDBa"
        password = b"test123"
        legacy = VaultConfig(hash_iterations=1000, kdf_iterations=100, hash_algorithm="sha1")

        hash_salt = b"\x07" * 16
        digest = hashlib.pbkdf2_hmac("sha1", password, hash_salt, legacy.hash_iterations, 32)
        key = hashlib.pbkdf2_hmac("sha1", password, salt.encode("utf-8"), legacy.kdf_iterations, 32)

        def field(text):
            iv = b"\x01" * 16
            padder = padding.PKCS7(128).padder()
            data = padder.update(text.encode("utf-8")) + padder.finalize()
            encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
            return base64.b64encode(iv + encryptor.update(data) + encryptor.finalize()).decode()

        package = {
            "Database": {
                "Id": 1,
                "Name": "TestDB",
                "Passhash": base64.b64encode(hash_salt + digest).decode(),
                "Salt": salt,
                "TwoFactorSecret": None,
            },
            "Accounts": [{
                "Id": 3,
                "DbID": 1,
                "Title": field("mail"),
                "Username": field("me"),
                "Password": field("p"),
                "Description": field(""),
                "Type": "web",
                "TwoFactorSecret": field(""),
            }],
        }
        parsed = loads_package(b"\xef\xbb\xbf" + orjson.dumps(package))

        default = VaultSession(MemoryStorage(), config=config)
        assert default.restore(parsed) is True
        assert default.login("TestDB", "test123") is LoginResult.WRONG_PASSWORD

        session = VaultSession(storage, config=legacy)
        assert session.restore(parsed) is True
        assert session.login("TestDB", "test123") is LoginResult.SUCCESS
        [account] = session.get_accounts()
        assert (account.title, account.username, account.password) == ("mail", "me", "p")
        assert account.description == ""
        assert account.type == "web"
