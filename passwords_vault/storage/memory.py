"""In-process storage, used for tests and throwaway vaults."""
import copy
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from ..exceptions import NotFoundError, StorageError
from ..models import Account, Vault
from .base import VaultStorage

logger = logging.getLogger("passwords.vault")


class MemoryStorage(VaultStorage):
    """Dict-backed store with snapshot/rollback transactions."""

    def __init__(self):
        self._vaults: dict[int, Vault] = {}
        self._accounts: dict[int, Account] = {}
        self._next_vault_id = 1
        self._next_account_id = 1
        self._depth = 0

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _snapshot(self) -> tuple:
        return (
            copy.deepcopy(self._vaults),
            copy.deepcopy(self._accounts),
            self._next_vault_id,
            self._next_account_id,
        )

    def _restore(self, snapshot: tuple) -> None:
        (
            self._vaults,
            self._accounts,
            self._next_vault_id,
            self._next_account_id,
        ) = snapshot

    @contextmanager
    def transaction(self) -> Iterator["MemoryStorage"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return
        snapshot = self._snapshot()
        self._depth = 1
        try:
            yield self
        except BaseException:
            self._restore(snapshot)
            logger.debug("Memory storage transaction rolled back")
            raise
        finally:
            self._depth = 0

    # ------------------------------------------------------------------
    # Vaults
    # ------------------------------------------------------------------

    def find_vault_by_name(self, name: str) -> Optional[Vault]:
        for vault in self._vaults.values():
            if vault.name == name:
                return vault.model_copy(deep=True)
        return None

    def get_vault(self, vault_id: int) -> Optional[Vault]:
        vault = self._vaults.get(vault_id)
        return vault.model_copy(deep=True) if vault else None

    def insert_vault(self, vault: Vault) -> int:
        if any(v.name == vault.name for v in self._vaults.values()):
            raise StorageError(f"Vault name already exists: {vault.name}")
        vault_id = self._next_vault_id
        self._next_vault_id += 1
        self._vaults[vault_id] = vault.model_copy(update={"id": vault_id}, deep=True)
        return vault_id

    def update_vault(self, vault: Vault) -> None:
        if vault.id not in self._vaults:
            raise NotFoundError(f"Vault {vault.id} not found")
        for other in self._vaults.values():
            if other.name == vault.name and other.id != vault.id:
                raise StorageError(f"Vault name already exists: {vault.name}")
        self._vaults[vault.id] = vault.model_copy(deep=True)

    def delete_vault_cascade(self, vault_id: int) -> None:
        if vault_id not in self._vaults:
            raise NotFoundError(f"Vault {vault_id} not found")
        del self._vaults[vault_id]
        self._accounts = {
            k: a for k, a in self._accounts.items() if a.vault_id != vault_id
        }

    def list_vaults(self) -> list[Vault]:
        return [v.model_copy(deep=True) for v in self._vaults.values()]

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def list_accounts(self, vault_id: int) -> list[Account]:
        return [
            a.model_copy(deep=True)
            for a in self._accounts.values()
            if a.vault_id == vault_id
        ]

    def get_account(self, account_id: int) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    def insert_accounts(self, accounts: list[Account]) -> list[int]:
        for account in accounts:
            if account.vault_id not in self._vaults:
                raise StorageError(f"Vault {account.vault_id} not found")
        ids = []
        for account in accounts:
            account_id = self._next_account_id
            self._next_account_id += 1
            self._accounts[account_id] = account.model_copy(
                update={"id": account_id}, deep=True
            )
            ids.append(account_id)
        return ids

    def update_account(self, account: Account) -> None:
        if account.id not in self._accounts:
            raise NotFoundError(f"Account {account.id} not found")
        self._accounts[account.id] = account.model_copy(deep=True)

    def delete_account(self, account_id: int) -> None:
        if account_id not in self._accounts:
            raise NotFoundError(f"Account {account_id} not found")
        del self._accounts[account_id]
