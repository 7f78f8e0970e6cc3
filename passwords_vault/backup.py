"""
Vault Backup — portable JSON packages of a vault and its encrypted accounts.

Package layout (UTF-8 JSON)::

    {
      "Database": {"Id", "Name", "Passhash", "Salt", "TwoFactorSecret"},
      "Accounts": [{"Id", "DbID", "Title", "Username", "Password",
                    "Description", "Type", "TwoFactorSecret"}, ...]
    }

``Passhash`` is base64 of ``salt(16) || digest`` and every encrypted account
field is base64 of ``IV || ciphertext``. Accounts are written as stored, never
re-encrypted, so the original password keeps working after a restore.
"""
import logging
from pathlib import Path
from typing import Union

import orjson
from pydantic import ValidationError as PydanticValidationError

from .exceptions import NotFoundError, StorageError, ValidationError
from .models import Account, BackupPackage, Vault

logger = logging.getLogger("passwords.vault")

_UTF8_BOM = b"\xef\xbb\xbf"


def build_package(vault: Vault, accounts: list[Account]) -> BackupPackage:
    """Bundle a stored vault with its encrypted accounts."""
    return BackupPackage(database=vault, accounts=list(accounts))


def dumps_package(package: BackupPackage) -> bytes:
    """Serialize ``package`` to JSON bytes."""
    return orjson.dumps(
        package.model_dump(mode="json", by_alias=True),
        option=orjson.OPT_INDENT_2,
    )


def loads_package(data: Union[bytes, str]) -> BackupPackage:
    """Parse and validate JSON produced by ``dumps_package``.

    Raises:
        ValidationError: If the data is not a well-formed package.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    if data.startswith(_UTF8_BOM):
        data = data[len(_UTF8_BOM):]
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise ValidationError(f"Backup package is not valid JSON: {err}") from err
    if not isinstance(parsed, dict):
        raise ValidationError("Backup package must be a JSON object")
    try:
        return BackupPackage.model_validate(parsed)
    except PydanticValidationError as err:
        raise ValidationError(
            f"Backup package is malformed ({err.error_count()} error(s))"
        ) from err


def write_package(package: BackupPackage, destination: Union[str, Path]) -> Path:
    """Write ``package`` to ``destination``; returns the path written."""
    path = Path(destination)
    try:
        path.write_bytes(dumps_package(package))
    except OSError as err:
        raise StorageError(f"Could not write backup to {path}: {err}") from err
    logger.info(
        "Backup written for vault=%s: %d account(s)",
        package.database.name, len(package.accounts),
    )
    return path


def read_package(source: Union[str, Path]) -> BackupPackage:
    """Read a package file.

    Raises:
        NotFoundError: If the file does not exist.
        StorageError: If the file cannot be read.
        ValidationError: If its contents are malformed.
    """
    path = Path(source)
    if not path.is_file():
        raise NotFoundError(f"Backup file not found: {path}")
    try:
        data = path.read_bytes()
    except OSError as err:
        raise StorageError(f"Could not read backup {path}: {err}") from err
    return loads_package(data)
