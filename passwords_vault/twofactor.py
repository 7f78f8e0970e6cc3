"""
Second factor — TOTP secrets and codes backed by ``pyotp``.

Codes are 6 digits on a 30 second step; validation tolerates
``valid_window`` steps of clock skew on either side of the current step.
"""
import base64
import logging
import random
from datetime import datetime
from typing import Optional, Union

import pyotp

from .generator import random_bytes

logger = logging.getLogger("passwords.vault")

SECRET_BYTES = 20  # 160-bit secret, 32 base32 characters
CODE_DIGITS = 6
CODE_INTERVAL = 30

ForTime = Optional[Union[int, float, datetime]]


class TotpProvider:
    """Generates and validates time-based one-time codes."""

    def __init__(
        self,
        valid_window: int = 1,
        rng: Optional[random.Random] = None,
        digits: int = CODE_DIGITS,
        interval: int = CODE_INTERVAL,
    ):
        self.valid_window = valid_window
        self.digits = digits
        self.interval = interval
        self._rng = rng

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.interval)

    def generate_secret(self) -> str:
        """Return a new base32 shared secret."""
        raw = random_bytes(SECRET_BYTES, self._rng)
        return base64.b32encode(raw).decode("ascii")

    def generate_code(self, secret: str, for_time: ForTime = None) -> str:
        """Return the code for ``secret`` at ``for_time`` (default: now)."""
        totp = self._totp(secret)
        if for_time is None:
            return totp.now()
        return totp.at(for_time)

    def validate_code(self, secret: str, code: str, for_time: ForTime = None) -> bool:
        """Check ``code`` against ``secret``; never raises on bad input."""
        if not secret or not code:
            return False
        code = str(code).strip()
        if len(code) != self.digits or not code.isdigit():
            return False
        try:
            return self._totp(secret).verify(
                code, for_time=for_time, valid_window=self.valid_window
            )
        except (ValueError, TypeError) as err:
            # malformed base32 secret
            logger.warning("Second factor validation failed: %s", type(err).__name__)
            return False

    def provisioning_uri(self, secret: str, name: str, issuer: str) -> str:
        """Build an ``otpauth://`` URI for authenticator apps."""
        return self._totp(secret).provisioning_uri(name=name, issuer_name=issuer)
