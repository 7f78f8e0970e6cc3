"""
SQLite storage — durable vault and account rows in a single database file.

Encrypted account fields are stored as the base64 text produced by the
session cipher; the database itself is not encrypted.
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import NotFoundError, StorageError
from ..models import Account, Vault
from .base import VaultStorage

logger = logging.getLogger("passwords.vault")

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS databases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    passhash TEXT NOT NULL,
    salt TEXT NOT NULL,
    two_factor_secret TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    db_id INTEGER NOT NULL REFERENCES databases(id) ON DELETE CASCADE,
    title TEXT,
    username TEXT,
    password TEXT,
    description TEXT,
    type TEXT,
    two_factor_secret TEXT
);
CREATE INDEX IF NOT EXISTS idx_accounts_db_id ON accounts(db_id);
"""

_VAULT_COLUMNS = "id, name, passhash, salt, two_factor_secret"
_ACCOUNT_COLUMNS = (
    "id, db_id, title, username, password, description, type, two_factor_secret"
)

_SELECT_VAULT_BY_NAME = f"SELECT {_VAULT_COLUMNS} FROM databases WHERE name = ?"
_SELECT_VAULT = f"SELECT {_VAULT_COLUMNS} FROM databases WHERE id = ?"
_SELECT_VAULTS = f"SELECT {_VAULT_COLUMNS} FROM databases ORDER BY id"

_INSERT_VAULT = """
INSERT INTO databases (name, passhash, salt, two_factor_secret)
VALUES (?, ?, ?, ?)
"""

_UPDATE_VAULT = """
UPDATE databases
SET name = ?, passhash = ?, salt = ?, two_factor_secret = ?
WHERE id = ?
"""

_DELETE_VAULT_ACCOUNTS = "DELETE FROM accounts WHERE db_id = ?"
_DELETE_VAULT = "DELETE FROM databases WHERE id = ?"

_SELECT_ACCOUNTS = (
    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE db_id = ? ORDER BY id"
)
_SELECT_ACCOUNT = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?"

_INSERT_ACCOUNT = """
INSERT INTO accounts
(db_id, title, username, password, description, type, two_factor_secret)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""

_UPDATE_ACCOUNT = """
UPDATE accounts
SET db_id = ?, title = ?, username = ?, password = ?,
    description = ?, type = ?, two_factor_secret = ?
WHERE id = ?
"""

_DELETE_ACCOUNT = "DELETE FROM accounts WHERE id = ?"


def _vault_from_row(row: sqlite3.Row) -> Vault:
    return Vault(
        id=row["id"],
        name=row["name"],
        passhash=row["passhash"],
        salt=row["salt"],
        two_factor_secret=row["two_factor_secret"],
    )


def _account_from_row(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        vault_id=row["db_id"],
        title=row["title"],
        username=row["username"],
        password=row["password"],
        description=row["description"],
        type=row["type"],
        two_factor_secret=row["two_factor_secret"],
    )


def _account_params(account: Account) -> tuple:
    return (
        account.vault_id,
        account.title,
        account.username,
        account.password,
        account.description,
        account.type,
        account.two_factor_secret,
    )


class SQLiteStorage(VaultStorage):
    """SQLite-backed store; one connection per instance.

    Args:
        path: Database file, or ``":memory:"``.
    """

    def __init__(self, path: Union[str, Path] = ":memory:"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(self.path, isolation_level=None)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")
            self.conn.executescript(_SCHEMA)
        except sqlite3.Error as err:
            raise StorageError(f"Could not open vault database: {err}") from err
        self._depth = 0
        logger.debug("Opened vault database at %s", self.path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        if self.conn is None:
            raise StorageError("Vault database is closed")
        try:
            return self.conn.execute(sql, params)
        except sqlite3.IntegrityError as err:
            raise StorageError(f"Constraint violation: {err}") from err
        except sqlite3.Error as err:
            raise StorageError(f"Database error: {err}") from err

    @contextmanager
    def transaction(self) -> Iterator["SQLiteStorage"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return
        self._execute("BEGIN")
        self._depth = 1
        try:
            yield self
        except BaseException:
            self._depth = 0
            self._execute("ROLLBACK")
            logger.debug("Vault database transaction rolled back")
            raise
        self._depth = 0
        self._execute("COMMIT")

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    # ------------------------------------------------------------------
    # Vaults
    # ------------------------------------------------------------------

    def find_vault_by_name(self, name: str) -> Optional[Vault]:
        row = self._execute(_SELECT_VAULT_BY_NAME, (name,)).fetchone()
        return _vault_from_row(row) if row else None

    def get_vault(self, vault_id: int) -> Optional[Vault]:
        row = self._execute(_SELECT_VAULT, (vault_id,)).fetchone()
        return _vault_from_row(row) if row else None

    def insert_vault(self, vault: Vault) -> int:
        cursor = self._execute(
            _INSERT_VAULT,
            (vault.name, vault.passhash, vault.salt, vault.two_factor_secret),
        )
        return cursor.lastrowid

    def update_vault(self, vault: Vault) -> None:
        cursor = self._execute(
            _UPDATE_VAULT,
            (
                vault.name,
                vault.passhash,
                vault.salt,
                vault.two_factor_secret,
                vault.id,
            ),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Vault {vault.id} not found")

    def delete_vault_cascade(self, vault_id: int) -> None:
        with self.transaction():
            self._execute(_DELETE_VAULT_ACCOUNTS, (vault_id,))
            cursor = self._execute(_DELETE_VAULT, (vault_id,))
            if cursor.rowcount == 0:
                raise NotFoundError(f"Vault {vault_id} not found")

    def list_vaults(self) -> list[Vault]:
        return [_vault_from_row(row) for row in self._execute(_SELECT_VAULTS)]

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def list_accounts(self, vault_id: int) -> list[Account]:
        rows = self._execute(_SELECT_ACCOUNTS, (vault_id,)).fetchall()
        return [_account_from_row(row) for row in rows]

    def get_account(self, account_id: int) -> Optional[Account]:
        row = self._execute(_SELECT_ACCOUNT, (account_id,)).fetchone()
        return _account_from_row(row) if row else None

    def insert_accounts(self, accounts: list[Account]) -> list[int]:
        ids = []
        with self.transaction():
            for account in accounts:
                cursor = self._execute(_INSERT_ACCOUNT, _account_params(account))
                ids.append(cursor.lastrowid)
        return ids

    def update_account(self, account: Account) -> None:
        cursor = self._execute(
            _UPDATE_ACCOUNT, _account_params(account) + (account.id,)
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Account {account.id} not found")

    def delete_account(self, account_id: int) -> None:
        cursor = self._execute(_DELETE_ACCOUNT, (account_id,))
        if cursor.rowcount == 0:
            raise NotFoundError(f"Account {account_id} not found")
