"""
Vault Backup — Single-slot snapshots and owner-only file writes.

``backup_vault`` copies the vault file to ``<vault>.backup``, overwriting the
previous snapshot. ``restore_vault`` copies a snapshot back; it never reopens
the vault, so an open handle on the destination must be closed and reopened
by the caller.
"""
import os
import logging
import tempfile
from pathlib import Path
from typing import Union

from ..exceptions import VaultIOError

logger = logging.getLogger("securekey.vault")

BACKUP_SUFFIX = ".backup"
FILE_MODE = 0o600

PathLike = Union[str, os.PathLike]


def backup_path_for(vault_path: PathLike) -> Path:
    """Return the single backup slot of a vault file."""
    path = Path(vault_path).expanduser()
    return path.with_name(path.name + BACKUP_SUFFIX)


def read_file(path: PathLike) -> bytes:
    """Read a whole file.

    Raises:
        VaultIOError: If the file cannot be read.
    """
    try:
        with open(path, "rb") as fp:
            return fp.read()
    except OSError as err:
        raise VaultIOError(f"Failed to read {path}: {err}") from err


def write_private_file(path: PathLike, data: bytes) -> None:
    """Atomically replace ``path`` with ``data``, mode 0600.

    The content is written to a temporary file in the same directory, synced
    and renamed over the target, so the target either keeps its previous
    bytes or holds exactly ``data``.

    Raises:
        VaultIOError: If any step fails; the target is left untouched.
    """
    path = Path(path)
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent,
        )
    except OSError as err:
        raise VaultIOError(f"Failed to write {path}: {err}") from err
    try:
        with os.fdopen(fd, "wb") as fp:
            os.fchmod(fp.fileno(), FILE_MODE)
            fp.write(data)
            fp.flush()
            os.fsync(fp.fileno())
        os.replace(tmp_name, path)
    except OSError as err:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise VaultIOError(f"Failed to write {path}: {err}") from err


def backup_vault(vault_path: PathLike) -> Path:
    """Snapshot a vault file into its ``.backup`` slot.

    Args:
        vault_path: Vault file to copy.

    Returns:
        Path of the backup file.

    Raises:
        VaultIOError: If the vault is missing or the copy fails.
    """
    source = Path(vault_path).expanduser()
    if not source.is_file():
        raise VaultIOError(f"Vault file does not exist: {source}")
    target = backup_path_for(source)
    write_private_file(target, read_file(source))
    logger.info("Vault backed up to %s", target)
    return target


def restore_vault(backup_path: PathLike, vault_path: PathLike) -> Path:
    """Copy a backup over a vault file, byte for byte.

    Args:
        backup_path: Snapshot to restore.
        vault_path: Destination vault file.

    Returns:
        Path of the restored vault.

    Raises:
        VaultIOError: If the backup is missing or the copy fails.
    """
    source = Path(backup_path).expanduser()
    target = Path(vault_path).expanduser()
    if not source.is_file():
        raise VaultIOError(f"Backup file does not exist: {source}")
    write_private_file(target, read_file(source))
    logger.info("Vault restored from %s", source)
    return target
