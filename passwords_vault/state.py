"""
Session state — the in-memory working set of one VaultSession.

Security Note:
    The cached password and the derived key are held in mutable buffers and
    overwritten on ``invalidate()``. Python may still hold transient copies
    (e.g. the ``str`` the caller passed in); removing those requires process
    isolation, which is out of scope.
"""
import hmac
from enum import Enum
from typing import Optional, Union

from .crypto import SymmetricCipher
from .models import Vault


class SessionStatus(Enum):
    LOGGED_OUT = "logged_out"
    AWAITING_SECOND_FACTOR = "awaiting_second_factor"
    LOGGED_IN = "logged_in"


def _wipe(buffer: Optional[bytearray]) -> None:
    if buffer is None:
        return
    for i in range(len(buffer)):
        buffer[i] = 0


class SessionState:
    """Current vault, cached password, cipher, counters and lifecycle status."""

    def __init__(self) -> None:
        self.status = SessionStatus.LOGGED_OUT
        self.vault: Optional[Vault] = None
        self.cipher: Optional[SymmetricCipher] = None
        self._password: Optional[bytearray] = None
        self.failed_attempts = 0
        self.failed_second_factor = 0

    def __repr__(self) -> str:
        return (
            f"<SessionState [{self.status.value}] vault={self.vault!r} "
            f"failed_attempts={self.failed_attempts}>"
        )

    @property
    def empty(self) -> bool:
        return self.vault is None and self.cipher is None and self._password is None

    def begin(
        self,
        vault: Vault,
        password: str,
        cipher: SymmetricCipher,
        status: SessionStatus,
    ) -> None:
        """Populate the state after a successful password check."""
        self.invalidate(reset_attempts=True)
        self.vault = vault
        self.cipher = cipher
        self._password = bytearray(password.encode("utf-8"))
        self.status = status

    def password_matches(self, candidate: Union[str, bytes, None]) -> bool:
        """Constant-time comparison against the cached password."""
        if self._password is None or candidate is None:
            return False
        if isinstance(candidate, str):
            candidate = candidate.encode("utf-8")
        return hmac.compare_digest(bytes(self._password), candidate)

    def replace_credentials(
        self, vault: Vault, password: str, cipher: SymmetricCipher
    ) -> None:
        """Swap in a new password and cipher, wiping the previous ones."""
        if self.cipher is not None and self.cipher is not cipher:
            self.cipher.wipe()
        _wipe(self._password)
        self.vault = vault
        self.cipher = cipher
        self._password = bytearray(password.encode("utf-8"))

    def invalidate(self, reset_attempts: bool = True) -> None:
        """Clear every field, zeroing key material in place."""
        if self.cipher is not None:
            self.cipher.wipe()
        _wipe(self._password)
        self.cipher = None
        self._password = None
        self.vault = None
        self.status = SessionStatus.LOGGED_OUT
        self.failed_second_factor = 0
        if reset_attempts:
            self.failed_attempts = 0
