"""
VaultSession — login, lockout, second factor and account access for one vault.

Provides the public API of PassWords Vault:
- ``create_vault`` / ``delete_vault`` / ``list_vaults`` — vault bookkeeping
- ``login`` / ``complete_second_factor`` / ``logout`` — the session lifecycle
- ``get_accounts`` / ``add`` / ``update`` / ``delete`` — account CRUD
- ``change_password`` — rotate the vault password, re-encrypting every account
- ``enable_second_factor`` / ``disable_second_factor`` — TOTP gate
- ``rename_vault`` / ``backup`` / ``restore``

Lifecycle::

    LOGGED_OUT --login--> AWAITING_SECOND_FACTOR --complete_second_factor--> LOGGED_IN
    LOGGED_OUT --login (no TOTP secret)----------------------------------> LOGGED_IN
    any --logout--> LOGGED_OUT

Security Note:
    Never log passwords, keys, TOTP secrets or ciphertext. Only log vault
    names and ids, operations and counters.
"""
import logging
import random
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .backup import build_package, read_package, write_package
from .codec import AccountCodec
from .conf import VaultConfig
from .crypto import SymmetricCipher
from .exceptions import (
    AuthError,
    NotFoundError,
    StateError,
    ValidationError,
    VaultError,
)
from .generator import random_salt
from .hashing import hash_password, verify_password
from .models import Account, BackupPackage, Vault
from .rotation import reencrypt_accounts
from .state import SessionState, SessionStatus
from .storage import SQLiteStorage, VaultStorage
from .twofactor import TotpProvider

logger = logging.getLogger("passwords.vault")

DEFAULT_DATABASE = "Passwords.epwd"


class LoginResult(Enum):
    SUCCESS = "success"
    WRONG_PASSWORD = "wrong_password"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    NOT_FOUND = "not_found"
    NEEDS_SECOND_FACTOR = "needs_second_factor"
    ERROR = "error"


class VaultSession:
    """Authenticated access to one vault at a time.

    A session is owned by a single caller; it does no internal locking.
    Failed password attempts are counted per session object.

    Args:
        storage: Storage collaborator holding vaults and accounts.
        config: Hashing, derivation and lockout settings.
        totp: Second-factor collaborator.
        rng: Random source for salts and TOTP secrets.
    """

    def __init__(
        self,
        storage: VaultStorage,
        config: Optional[VaultConfig] = None,
        totp: Optional[TotpProvider] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or VaultConfig()
        self._storage = storage
        self._rng = rng
        self._totp = totp or TotpProvider(
            valid_window=self.config.totp_valid_window, rng=rng,
        )
        self._state = SessionState()
        self._codec = AccountCodec(self._state)
        self._owns_storage = False

    @classmethod
    def open(
        cls,
        path: Optional[Union[str, Path]] = None,
        config: Optional[VaultConfig] = None,
        **kwargs,
    ) -> "VaultSession":
        """Open a session over a SQLite database file.

        The path defaults to ``config.database_path`` and then to
        ``Passwords.epwd`` in the working directory.
        """
        config = config or VaultConfig.from_env()
        path = path or config.database_path or DEFAULT_DATABASE
        session = cls(SQLiteStorage(path), config=config, **kwargs)
        session._owns_storage = True
        return session

    def close(self) -> None:
        """Wipe the session and release storage opened by ``open()``."""
        self._state.invalidate()
        if self._owns_storage:
            self._storage.close()

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __del__(self):
        state = getattr(self, "_state", None)
        if state is not None:
            state.invalidate()

    def __repr__(self) -> str:
        return f"<VaultSession [{self.status.value}] vault={self._state.vault!r}>"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def is_logged_in(self) -> bool:
        return self._state.status is SessionStatus.LOGGED_IN

    @property
    def needs_second_factor(self) -> bool:
        return self._state.status is SessionStatus.AWAITING_SECOND_FACTOR

    @property
    def failed_attempts(self) -> int:
        return self._state.failed_attempts

    @property
    def totp(self) -> TotpProvider:
        return self._totp

    @property
    def vault_name(self) -> str:
        """Name of the open vault."""
        return self._require_login("vault_name").name

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _hash(self, password: str) -> str:
        return hash_password(
            password,
            iterations=self.config.hash_iterations,
            length=self.config.hash_length,
            algorithm=self.config.hash_algorithm,
            rng=self._rng,
        )

    def _verify(self, passhash: str, password: str) -> bool:
        try:
            return verify_password(
                passhash,
                password,
                iterations=self.config.hash_iterations,
                algorithm=self.config.hash_algorithm,
            )
        except ValidationError:
            return False

    def _cipher_for(self, password: str, salt: str) -> SymmetricCipher:
        return SymmetricCipher.from_password(
            password,
            salt,
            iterations=self.config.kdf_iterations,
            key_size=self.config.key_size,
            algorithm=self.config.hash_algorithm,
            backend=self.config.cipher_backend,
        )

    def _require_login(self, operation: str) -> Vault:
        if self._state.status is not SessionStatus.LOGGED_IN:
            raise StateError(
                f"{operation} requires a logged in session "
                f"(current state: {self._state.status.value})"
            )
        return self._state.vault

    def _authenticated(self, operation: str) -> bool:
        if self._state.status is SessionStatus.LOGGED_IN:
            return True
        logger.debug(
            "Refused %s in state %s", operation, self._state.status.value,
        )
        return False

    # ------------------------------------------------------------------
    # Vault bookkeeping
    # ------------------------------------------------------------------

    def create_vault(self, name: str, password: str) -> bool:
        """Create a vault protected by ``password``.

        Returns:
            False if the name is empty or in use, or on a storage failure.
        """
        if not name or not name.strip() or not password:
            return False
        try:
            if self._storage.find_vault_by_name(name) is not None:
                logger.info("Vault name already in use: %s", name)
                return False
            vault = Vault(
                name=name,
                passhash=self._hash(password),
                salt=random_salt(self._rng),
            )
            vault_id = self._storage.insert_vault(vault)
        except VaultError as err:
            logger.error("Failed to create vault %s: %s", name, err)
            return False
        logger.info("Vault created: name=%s id=%s", name, vault_id)
        return True

    def delete_vault(self, name: str) -> bool:
        """Delete a vault and all of its accounts.

        Logs out first when ``name`` is the vault open in this session.
        """
        try:
            vault = self._storage.find_vault_by_name(name)
            if vault is None:
                return False
            if self._state.vault is not None and self._state.vault.id == vault.id:
                self.logout()
            with self._storage.transaction():
                self._storage.delete_vault_cascade(vault.id)
        except VaultError as err:
            logger.error("Failed to delete vault %s: %s", name, err)
            return False
        logger.info("Vault deleted: name=%s id=%s", name, vault.id)
        return True

    def list_vaults(self) -> list[Vault]:
        """Return every stored vault."""
        return self._storage.list_vaults()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def login(self, name: str, password: str) -> LoginResult:
        """Open vault ``name`` with ``password``.

        Returns:
            LoginResult describing the outcome; never raises for wrong
            credentials, unknown vaults or lockout.
        """
        if self._state.status is not SessionStatus.LOGGED_OUT:
            logger.warning(
                "Login refused: session already %s", self._state.status.value,
            )
            return LoginResult.ERROR
        try:
            vault = self._storage.find_vault_by_name(name)
        except VaultError as err:
            logger.error("Login failed for vault=%s: %s", name, err)
            return LoginResult.ERROR

        if self._state.failed_attempts > self.config.lockout_threshold:
            if vault is not None:
                # keep lockout as slow as a wrong password
                self._verify(vault.passhash, password)
            logger.warning(
                "Login refused for vault=%s: too many failed attempts (%d)",
                name, self._state.failed_attempts,
            )
            return LoginResult.TOO_MANY_ATTEMPTS

        if vault is None:
            return LoginResult.NOT_FOUND

        if not self._verify(vault.passhash, password):
            self._state.failed_attempts += 1
            logger.warning(
                "Wrong password for vault=%s (attempt %d)",
                name, self._state.failed_attempts,
            )
            return LoginResult.WRONG_PASSWORD

        try:
            cipher = self._cipher_for(password, vault.salt)
        except ValidationError as err:
            logger.error("Cannot derive key for vault=%s: %s", name, err)
            return LoginResult.ERROR

        if vault.has_second_factor:
            self._state.begin(
                vault, password, cipher, SessionStatus.AWAITING_SECOND_FACTOR,
            )
            logger.info("Vault %s awaiting second factor", name)
            return LoginResult.NEEDS_SECOND_FACTOR

        self._state.begin(vault, password, cipher, SessionStatus.LOGGED_IN)
        logger.info("Vault %s unlocked", name)
        return LoginResult.SUCCESS

    def complete_second_factor(self, code: str) -> bool:
        """Validate a TOTP ``code`` to finish a gated login.

        Failed codes do not count toward the password lockout. After
        ``max_second_factor_attempts`` consecutive failures the session is
        wiped and the password must be entered again.
        """
        if self._state.status is not SessionStatus.AWAITING_SECOND_FACTOR:
            return False
        vault = self._state.vault
        if self._totp.validate_code(vault.two_factor_secret, code):
            self._state.failed_second_factor = 0
            self._state.status = SessionStatus.LOGGED_IN
            logger.info("Vault %s unlocked with second factor", vault.name)
            return True
        self._state.failed_second_factor += 1
        logger.warning(
            "Wrong second factor code for vault=%s (attempt %d)",
            vault.name, self._state.failed_second_factor,
        )
        if self._state.failed_second_factor >= self.config.max_second_factor_attempts:
            logger.warning(
                "Too many second factor failures for vault=%s; session reset",
                vault.name,
            )
            self._state.invalidate()
        return False

    def logout(self) -> bool:
        """Close the vault and wipe key material.

        Returns:
            False if the session was already logged out.
        """
        if self._state.status is SessionStatus.LOGGED_OUT:
            return False
        name = self._state.vault.name if self._state.vault else None
        self._state.invalidate()
        logger.info("Vault %s locked", name)
        return True

    def unlock(self, name: str, password: str, code: Optional[str] = None) -> None:
        """Log in and complete the second factor, raising on any failure.

        Raises:
            NotFoundError: If the vault does not exist.
            AuthError: On a wrong password or code, lockout, or a missing code.
            StateError: If the session is not logged out.
        """
        result = self.login(name, password)
        if result is LoginResult.SUCCESS:
            return
        if result is LoginResult.NOT_FOUND:
            raise NotFoundError(f"Vault {name} does not exist")
        if result is LoginResult.ERROR:
            raise StateError(f"Could not log in to vault {name}")
        if result is not LoginResult.NEEDS_SECOND_FACTOR:
            raise AuthError(f"Login to vault {name} failed: {result.value}")
        if code is None or not self.complete_second_factor(code):
            self.logout()
            raise AuthError(f"Second factor for vault {name} rejected")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_accounts(self) -> list[Account]:
        """Return decrypted copies of every account in the open vault.

        Raises:
            StateError: If the session is not logged in.
        """
        vault = self._require_login("get_accounts")
        return [
            self._codec.decrypt(account)
            for account in self._storage.list_accounts(vault.id)
        ]

    def add(self, account: Account) -> bool:
        """Encrypt and store ``account``; its ``id`` and ``vault_id`` are set."""
        if not self._authenticated("add"):
            return False
        vault = self._state.vault
        try:
            encrypted = self._codec.encrypt(account)
            encrypted.id = None
            [account_id] = self._storage.insert_accounts([encrypted])
        except VaultError as err:
            logger.error("Failed to add account to vault=%s: %s", vault.name, err)
            return False
        account.id = account_id
        account.vault_id = vault.id
        logger.debug("Account id=%s added to vault=%s", account_id, vault.name)
        return True

    def _owned_account(self, account_id: Optional[int]) -> Optional[Account]:
        if account_id is None:
            return None
        stored = self._storage.get_account(account_id)
        if stored is None or stored.vault_id != self._state.vault.id:
            logger.warning(
                "Account id=%s does not belong to vault=%s",
                account_id, self._state.vault.name,
            )
            return None
        return stored

    def update(self, account: Account) -> bool:
        """Re-encrypt and store ``account`` over the stored record with its id."""
        if not self._authenticated("update"):
            return False
        try:
            if self._owned_account(account.id) is None:
                return False
            encrypted = self._codec.encrypt(account)
            self._storage.update_account(encrypted)
        except VaultError as err:
            logger.error("Failed to update account id=%s: %s", account.id, err)
            return False
        account.vault_id = self._state.vault.id
        return True

    def delete(self, account: Union[Account, int]) -> bool:
        """Delete an account of the open vault, given the record or its id."""
        if not self._authenticated("delete"):
            return False
        account_id = account.id if isinstance(account, Account) else account
        try:
            if self._owned_account(account_id) is None:
                return False
            self._storage.delete_account(account_id)
        except VaultError as err:
            logger.error("Failed to delete account id=%s: %s", account_id, err)
            return False
        logger.debug("Account id=%s deleted", account_id)
        return True

    # ------------------------------------------------------------------
    # Second factor
    # ------------------------------------------------------------------

    def _save_vault(self, vault: Vault, operation: str) -> bool:
        try:
            self._storage.update_vault(vault)
        except VaultError as err:
            logger.error("Failed to %s for vault=%s: %s", operation, vault.name, err)
            return False
        self._state.vault = vault
        return True

    def enable_second_factor(self) -> bool:
        """Generate and store a new TOTP secret for the open vault."""
        if not self._authenticated("enable_second_factor"):
            return False
        vault = self._state.vault.model_copy(
            update={"two_factor_secret": self._totp.generate_secret()},
        )
        if not self._save_vault(vault, "enable second factor"):
            return False
        logger.info("Second factor enabled for vault=%s", vault.name)
        return True

    def disable_second_factor(self) -> bool:
        """Remove the TOTP secret; False when none is set."""
        if not self._authenticated("disable_second_factor"):
            return False
        if not self._state.vault.has_second_factor:
            return False
        vault = self._state.vault.model_copy(update={"two_factor_secret": ""})
        if not self._save_vault(vault, "disable second factor"):
            return False
        logger.info("Second factor disabled for vault=%s", vault.name)
        return True

    def second_factor_secret(self) -> str:
        """The TOTP secret of the open vault (empty when disabled)."""
        return self._require_login("second_factor_secret").two_factor_secret

    def second_factor_uri(self) -> str:
        """``otpauth://`` provisioning URI for the open vault's secret."""
        vault = self._require_login("second_factor_uri")
        if not vault.has_second_factor:
            raise StateError(f"Vault {vault.name} has no second factor")
        return self._totp.provisioning_uri(
            vault.two_factor_secret, vault.name, self.config.totp_issuer,
        )

    # ------------------------------------------------------------------
    # Password and name
    # ------------------------------------------------------------------

    def change_password(self, old: str, new: str) -> bool:
        """Rotate the vault password and re-encrypt every account.

        The new hash and all re-encrypted accounts are written in one storage
        transaction; on failure nothing changes and the old password stays
        valid.

        Returns:
            False if ``old`` is not the current password, ``new`` is empty,
            or the rotation failed.
        """
        if not self._authenticated("change_password"):
            return False
        if not new:
            return False
        if not self._state.password_matches(old):
            logger.warning(
                "Password change refused for vault=%s: current password mismatch",
                self._state.vault.name,
            )
            return False
        vault = self._state.vault
        try:
            new_cipher = self._cipher_for(new, vault.salt)
        except ValidationError as err:
            logger.error("Cannot derive key for vault=%s: %s", vault.name, err)
            return False
        updated = vault.model_copy(update={"passhash": self._hash(new)})
        try:
            with self._storage.transaction():
                self._storage.update_vault(updated)
                reencrypt_accounts(
                    self._storage, vault.id, self._state.cipher, new_cipher,
                )
        except VaultError as err:
            new_cipher.wipe()
            logger.error(
                "Password change failed for vault=%s, rolled back: %s",
                vault.name, err,
            )
            return False
        self._state.replace_credentials(updated, new, new_cipher)
        logger.info("Password changed for vault=%s", vault.name)
        return True

    def rename_vault(self, new_name: str) -> bool:
        """Change the display name of the open vault; the salt is untouched."""
        if not self._authenticated("rename_vault"):
            return False
        if not new_name or not new_name.strip():
            return False
        vault = self._state.vault
        if new_name == vault.name:
            return True
        try:
            if self._storage.find_vault_by_name(new_name) is not None:
                logger.info("Vault name already in use: %s", new_name)
                return False
        except VaultError as err:
            logger.error("Failed to rename vault=%s: %s", vault.name, err)
            return False
        renamed = vault.model_copy(update={"name": new_name})
        if not self._save_vault(renamed, "rename"):
            return False
        logger.info("Vault id=%s renamed %s -> %s", vault.id, vault.name, new_name)
        return True

    # ------------------------------------------------------------------
    # Backup / restore
    # ------------------------------------------------------------------

    def backup_package(self) -> BackupPackage:
        """Bundle the open vault and its accounts as currently stored.

        Raises:
            StateError: If the session is not logged in.
        """
        vault = self._require_login("backup")
        stored = self._storage.get_vault(vault.id) or vault
        return build_package(stored, self._storage.list_accounts(vault.id))

    def backup(self, destination: Union[str, Path]) -> bool:
        """Write a backup package of the open vault to ``destination``."""
        if not self._authenticated("backup"):
            return False
        try:
            write_package(self.backup_package(), destination)
        except VaultError as err:
            logger.error("Backup failed: %s", err)
            return False
        return True

    def _restore_name(self, original: str, name: Optional[str]) -> Optional[str]:
        if name is not None:
            if not name.strip():
                return None
            if self._storage.find_vault_by_name(name) is not None:
                logger.warning("Restore refused: vault %s already exists", name)
                return None
            return name
        for candidate in (original, f"_{original}"):
            if self._storage.find_vault_by_name(candidate) is None:
                return candidate
        logger.warning("Restore refused: no free name for vault %s", original)
        return None

    def restore(
        self,
        source: Union[str, Path, BackupPackage],
        name: Optional[str] = None,
    ) -> bool:
        """Import a backup as a new vault, keeping its hash and salt.

        Only allowed while logged out. Without ``name`` the package's vault
        name is used, or ``"_" + name`` when that is taken.

        Returns:
            False if the package is missing or malformed, the name is taken,
            or storage fails.
        """
        if self._state.status is not SessionStatus.LOGGED_OUT:
            logger.warning(
                "Restore refused: session is %s", self._state.status.value,
            )
            return False
        try:
            package = (
                source if isinstance(source, BackupPackage) else read_package(source)
            )
            target = self._restore_name(package.database.name, name)
            if target is None:
                return False
            vault = Vault(
                name=target,
                passhash=package.database.passhash,
                salt=package.database.salt,
                two_factor_secret=package.database.two_factor_secret,
            )
            with self._storage.transaction():
                vault_id = self._storage.insert_vault(vault)
                accounts = [
                    account.model_copy(update={"id": None, "vault_id": vault_id})
                    for account in package.accounts
                ]
                if accounts:
                    self._storage.insert_accounts(accounts)
        except VaultError as err:
            logger.error("Restore failed: %s", err)
            return False
        logger.info(
            "Restored vault %s as %s (id=%s, %d account(s))",
            package.database.name, target, vault_id, len(package.accounts),
        )
        return True
