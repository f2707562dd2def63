"""
Vault Key Rotation — Re-encryption of all entries under a new master password.

Rotation generates a fresh salt, derives a new key from the new password and
rewrites header and entries in one atomic file replacement. The in-memory key
is swapped only after the write succeeds; on failure the vault keeps its
previous key and the file keeps its previous bytes.

Security Note:
    Plaintext exists in memory only while the entry block is re-encrypted.
    Never log passwords or key material.
"""
import logging
from typing import TYPE_CHECKING

from ..exceptions import CryptoError, ValidationError
from .crypto import derive_key, generate_salt, secure_wipe

if TYPE_CHECKING:
    from .store import Vault

logger = logging.getLogger("securekey.vault")


def rotate_master_password(
    vault: "Vault",
    old_password: str,
    new_password: str,
) -> None:
    """Change the master password of an open vault.

    Args:
        vault: Open vault handle.
        old_password: Current master password.
        new_password: Replacement master password.

    Raises:
        VaultStateError: If the vault is closed.
        ValidationError: If a password is empty.
        CryptoError: If ``old_password`` does not match the vault key.
        VaultIOError: If the vault cannot be rewritten.
    """
    vault._ensure_open()
    if not old_password or not new_password:
        raise ValidationError("Old and new passwords are required")
    if not vault._check_password(old_password):
        logger.info("Master password rotation refused for %s", vault.path)
        raise CryptoError("Wrong old password")

    logger.info(
        "Starting master password rotation for %s (%d entries)",
        vault.path, vault.entry_count,
    )
    vault._auto_backup()

    new_header = vault._header._replace(salt=generate_salt())
    new_key = derive_key(
        new_password, new_header.salt, vault.config.kdf_iterations,
    )
    try:
        vault._persist(new_header, vault._entries, new_key)
    except Exception:
        secure_wipe(new_key)
        raise

    old_key = vault._key
    vault._key = new_key
    vault._header = new_header
    secure_wipe(old_key)

    logger.info("Master password rotation complete for %s", vault.path)
