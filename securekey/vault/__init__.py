"""Vault — Encrypted credential storage bound to one vault file.

Security Note (Threat Model):
    Decrypted entries live in process memory while the vault is open. Keys
    and plaintext buffers are wiped on close, but Python strings holding
    entry fields cannot be overwritten and remain until collected.
    This is an accepted limitation.

    No file locking is performed: concurrent processes writing the same
    vault file race and can corrupt it.
"""

from .store import Vault, vault_exists, verify_password
from .config import VaultConfig, default_vault_path, ensure_directories
from .format import VaultEntry, VaultHeader
from .backup import backup_vault, restore_vault

__all__ = [
    "Vault",
    "vault_exists",
    "verify_password",
    "VaultConfig",
    "default_vault_path",
    "ensure_directories",
    "VaultEntry",
    "VaultHeader",
    "backup_vault",
    "restore_vault",
]
