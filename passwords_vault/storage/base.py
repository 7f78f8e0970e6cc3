"""
Storage port — the narrow interface VaultSession uses for persistence.

Implementations own Vault and Account rows and hand out copies; a record
returned by the store can be modified freely without touching stored state
until it is written back.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional

from ..models import Account, Vault


class VaultStorage(ABC):
    """Transactional CRUD over vaults and their accounts.

    Every method raises ``StorageError`` on a persistence failure.
    ``update_*``/``delete_*`` raise ``NotFoundError`` for unknown ids.
    """

    @abstractmethod
    def find_vault_by_name(self, name: str) -> Optional[Vault]:
        ...

    @abstractmethod
    def get_vault(self, vault_id: int) -> Optional[Vault]:
        ...

    @abstractmethod
    def insert_vault(self, vault: Vault) -> int:
        """Insert ``vault`` and return its new id; names must be unique."""

    @abstractmethod
    def update_vault(self, vault: Vault) -> None:
        ...

    @abstractmethod
    def delete_vault_cascade(self, vault_id: int) -> None:
        """Delete a vault together with every account it owns."""

    @abstractmethod
    def list_vaults(self) -> list[Vault]:
        ...

    @abstractmethod
    def list_accounts(self, vault_id: int) -> list[Account]:
        ...

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        ...

    @abstractmethod
    def insert_accounts(self, accounts: list[Account]) -> list[int]:
        """Insert ``accounts`` as one unit and return their new ids in order."""

    @abstractmethod
    def update_account(self, account: Account) -> None:
        ...

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        ...

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """Context manager grouping writes; any exception rolls all of them back.

        Transactions nest: only the outermost block commits or rolls back.
        """

    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "VaultStorage":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
