import random

import pytest

from passwords_vault import (
    Account,
    MemoryStorage,
    SQLiteStorage,
    VaultConfig,
    VaultSession,
)


@pytest.fixture
def config():
    """Low iteration counts keep PBKDF2 fast in tests."""
    return VaultConfig(hash_iterations=1000, kdf_iterations=100)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def session(storage, config):
    return VaultSession(storage, config=config, rng=random.Random(1234))


@pytest.fixture
def vault(session):
    """A session with vault TestDB/test123 created, logged out."""
    assert session.create_vault("TestDB", "test123")
    return session


@pytest.fixture
def logged_in(vault):
    vault.login("TestDB", "test123")
    return vault


@pytest.fixture
def sqlite_storage(tmp_path):
    store = SQLiteStorage(tmp_path / "Passwords.epwd")
    yield store
    store.close()


@pytest.fixture
def make_account():
    """Factory for plaintext accounts shaped like real entries."""
    def _make(**overrides) -> Account:
        values = {
            "title": "testaccount",
            "username": "test",
            "password": "test123",
            "description": "This is an test account",
            "type": "test",
            "two_factor_secret": "",
        }
        values.update(overrides)
        return Account(**values)
    return _make
