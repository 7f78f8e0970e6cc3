"""
Account codec — maps accounts to and from their encrypted-at-rest form.

Each of ``ENCRYPTED_FIELDS`` is encrypted on its own with a fresh IV;
``vault_id`` is stamped on every pass and never encrypted. ``None`` fields
are treated as empty text.
"""
from .crypto import SymmetricCipher
from .exceptions import StateError
from .models import ENCRYPTED_FIELDS, Account
from .state import SessionState, SessionStatus


def encrypt_account(account: Account, cipher: SymmetricCipher, vault_id: int) -> Account:
    """Return an encrypted copy of ``account`` owned by ``vault_id``."""
    values = {
        field: cipher.encrypt_text(getattr(account, field) or "")
        for field in ENCRYPTED_FIELDS
    }
    values["vault_id"] = vault_id
    return account.model_copy(update=values)


def decrypt_account(account: Account, cipher: SymmetricCipher, vault_id: int) -> Account:
    """Return a plaintext copy of ``account`` owned by ``vault_id``."""
    values = {}
    for field in ENCRYPTED_FIELDS:
        token = getattr(account, field)
        # records written without a value for a field decrypt to empty text
        values[field] = cipher.decrypt_text(token) if token else ""
    values["vault_id"] = vault_id
    return account.model_copy(update=values)


class AccountCodec:
    """Encrypts/decrypts accounts with the active cipher of a session."""

    def __init__(self, state: SessionState):
        self._state = state

    def _active(self) -> tuple:
        if self._state.status is not SessionStatus.LOGGED_IN or self._state.cipher is None:
            raise StateError("Accounts can only be encrypted in a logged in session")
        return self._state.cipher, self._state.vault.id

    def encrypt(self, account: Account) -> Account:
        cipher, vault_id = self._active()
        return encrypt_account(account, cipher, vault_id)

    def decrypt(self, account: Account) -> Account:
        cipher, vault_id = self._active()
        return decrypt_account(account, cipher, vault_id)
