"""
Random source helpers — salts, secrets and generated passwords.

Every helper takes an explicit ``rng`` so callers (and tests) own the random
source; when omitted a fresh ``secrets.SystemRandom`` is used.
"""
import base64
import random
import secrets
import string
from typing import Optional

from .exceptions import ValidationError

LETTERS = string.ascii_lowercase
CAPITALS = string.ascii_uppercase
NUMBERS = string.digits
SPECIAL = "!@#$%^&*()-=_+;<>?,.{}[]"

SALT_BYTES = 18  # 24 url-safe base64 characters


def default_random() -> random.Random:
    """Return a cryptographically strong random source."""
    return secrets.SystemRandom()


def random_bytes(length: int, rng: Optional[random.Random] = None) -> bytes:
    """Return ``length`` random bytes drawn from ``rng``."""
    if length < 0:
        raise ValidationError("Random byte length can't be negative")
    rng = rng or default_random()
    return rng.randbytes(length)


def random_salt(rng: Optional[random.Random] = None) -> str:
    """Generate an independent vault salt (24 url-safe characters)."""
    return base64.urlsafe_b64encode(random_bytes(SALT_BYTES, rng)).decode("ascii")


def random_string(
    length: int,
    letters: bool = True,
    capitals: bool = False,
    numbers: bool = False,
    special: bool = False,
    rng: Optional[random.Random] = None,
) -> str:
    """Generate a random string from the selected alphabets.

    Args:
        length: Number of characters to generate.
        letters: Include lowercase letters.
        capitals: Include uppercase letters.
        numbers: Include digits.
        special: Include punctuation from ``SPECIAL``.
        rng: Random source, defaults to ``secrets.SystemRandom``.

    Returns:
        The generated string.

    Raises:
        ValidationError: If length is negative or no alphabet is selected.
    """
    if length < 0:
        raise ValidationError("Could not generate string: length can't be negative")
    chars = ""
    if letters:
        chars += LETTERS
    if capitals:
        chars += CAPITALS
    if numbers:
        chars += NUMBERS
    if special:
        chars += SPECIAL
    if not chars:
        raise ValidationError("Could not generate string: no characters selected")
    rng = rng or default_random()
    return "".join(rng.choice(chars) for _ in range(length))
