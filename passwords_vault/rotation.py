"""
Vault Re-encryption — moves every account of a vault from one key to another.

Used by password changes: the new password hash and the re-encrypted
accounts are written inside a single storage transaction, so a failure on
any row rolls back the hash and every row already rewritten. Unlike a
best-effort batch job, a row that fails to decrypt aborts the whole run.

Security Note:
    Plaintext exists in memory only during re-encryption of each row.
    Never log plaintext or ciphertext values.
"""
import logging

from .codec import decrypt_account, encrypt_account
from .crypto import SymmetricCipher
from .storage import VaultStorage

logger = logging.getLogger("passwords.vault")


def reencrypt_accounts(
    storage: VaultStorage,
    vault_id: int,
    old_cipher: SymmetricCipher,
    new_cipher: SymmetricCipher,
) -> dict:
    """Re-encrypt all accounts of ``vault_id`` from ``old_cipher`` to ``new_cipher``.

    Args:
        storage: Storage collaborator.
        vault_id: Vault whose accounts are rewritten.
        old_cipher: Cipher the accounts are currently encrypted with.
        new_cipher: Cipher to encrypt them with.

    Returns:
        Stats dict with keys: total, rotated.

    Raises:
        CryptoError: If an account cannot be decrypted with ``old_cipher``.
        StorageError: If a row cannot be written.
    """
    stats = {"total": 0, "rotated": 0}
    with storage.transaction():
        accounts = storage.list_accounts(vault_id)
        stats["total"] = len(accounts)
        logger.info(
            "Re-encrypting %d account(s) of vault id=%s", len(accounts), vault_id,
        )
        for account in accounts:
            plain = decrypt_account(account, old_cipher, vault_id)
            storage.update_account(encrypt_account(plain, new_cipher, vault_id))
            stats["rotated"] += 1
    logger.info("Re-encryption complete: %s", stats)
    return stats
