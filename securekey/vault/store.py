"""
Vault — Encrypted credential store bound to one vault file.

Provides the public API of the Vault Storage Engine:
- ``Vault.open_or_create(path, password)`` — create or unlock a vault file
- ``store`` / ``get`` / ``list_entries`` / ``remove`` — entry CRUD
- ``change_master_password`` — re-key under a fresh salt
- ``backup`` / ``restore`` — single-slot snapshots
- ``export_entries`` / ``import_entries`` — JSON transfer
- ``close()`` — wipe the key and drop decrypted entries

Every mutation re-encrypts the whole entry block and atomically rewrites
the file. In-memory state changes only after the write succeeds.

Security Note:
    Never log passwords, secrets or key material. Only log paths, service
    and username names, and counts.
"""
import os
import hmac
import logging
from pathlib import Path
from typing import Callable, Optional

import pydantic

from ..exceptions import (
    ConfirmationDeclined,
    CryptoError,
    FormatError,
    NotFoundError,
    ValidationError,
    VaultIOError,
    VaultStateError,
)
from .config import VaultConfig, ensure_directories
from .crypto import decrypt, derive_key, encrypt, generate_salt, secure_wipe
from .format import (
    HEADER_SIZE,
    VaultEntry,
    VaultHeader,
    pack_entries,
    unpack_entries,
)
from .backup import (
    FILE_MODE,
    PathLike,
    backup_vault,
    read_file,
    restore_vault,
    write_private_file,
)
from . import key_rotation, transfer

logger = logging.getLogger("securekey.vault")

ConfirmCallback = Callable[[VaultEntry], bool]


def vault_exists(path: PathLike) -> bool:
    """Check whether a vault file exists at ``path``."""
    return Path(path).expanduser().is_file()


def _require_password(password: str, name: str = "Master password") -> None:
    if not isinstance(password, str) or not password:
        raise ValidationError(f"{name} is required")


def _decrypt_entries(
    body: bytes, header: VaultHeader, key: bytearray,
) -> list[VaultEntry]:
    """Decrypt the entry block that follows a header."""
    if header.entry_count == 0:
        if body:
            raise FormatError("Unexpected data after an empty vault header")
        return []
    plaintext = decrypt(body, key)
    try:
        return unpack_entries(plaintext, header.entry_count)
    finally:
        secure_wipe(plaintext)


def verify_password(
    path: PathLike,
    password: str,
    config: Optional[VaultConfig] = None,
) -> bool:
    """Check a master password against a vault file without opening it.

    An empty vault holds no ciphertext, so any password verifies.

    Returns:
        True if the password decrypts the vault, False otherwise or if
        the file does not exist.

    Raises:
        FormatError: If the file is not a vault.
    """
    _require_password(password)
    path = Path(path).expanduser()
    if not path.is_file():
        return False
    iterations = (config or VaultConfig.from_env(path)).kdf_iterations
    data = read_file(path)
    header = VaultHeader.unpack(data)
    key = derive_key(password, header.salt, iterations)
    try:
        _decrypt_entries(data[HEADER_SIZE:], header, key)
    except CryptoError:
        return False
    finally:
        secure_wipe(key)
    return True


class Vault:
    """Open handle on an encrypted vault file.

    A handle is either open (key and entries in memory) or closed. It is
    constructed by :meth:`open_or_create` and released by :meth:`close`,
    or by leaving a ``with`` block.

    The vault defines no locking protocol: only one process may write a
    given vault file at a time.
    """

    def __init__(
        self,
        config: VaultConfig,
        confirm: Optional[ConfirmCallback] = None,
    ):
        self._config = config
        self._path = config.vault_path
        self._confirm = confirm
        self._key: Optional[bytearray] = None
        self._header: Optional[VaultHeader] = None
        self._entries: list[VaultEntry] = []
        self._is_open = False

    def __repr__(self) -> str:
        state = "open" if self._is_open else "closed"
        return f"<Vault [{state}] path={str(self._path)!r} entries={len(self._entries)}>"

    def __enter__(self) -> "Vault":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def open_or_create(
        cls,
        path: Optional[PathLike],
        password: str,
        *,
        config: Optional[VaultConfig] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> "Vault":
        """Open the vault at ``path``, creating it if it does not exist.

        Args:
            path: Vault file; ``None`` uses ``config.vault_path``.
            password: Master password.
            config: Vault settings; defaults to :meth:`VaultConfig.from_env`
                with ``path`` as the vault file.
            confirm: Callback asked before overwriting an existing entry.

        Returns:
            An open Vault.

        Raises:
            FormatError: If the file has an unknown magic/version.
            CryptoError: If the password does not decrypt the entries.
            VaultIOError: If the file or its directories are inaccessible.
            ValidationError: If the password or an environment setting is
                malformed.
        """
        _require_password(password)
        if config is None:
            config = VaultConfig.from_env(path or None)
        elif path:
            config = config.model_copy(
                update={"vault_path": Path(path).expanduser()}
            )
        ensure_directories(config)

        vault = cls(config, confirm=confirm)
        if vault_exists(vault._path):
            vault._unlock(password)
        else:
            vault._create(password)
        return vault

    def _create(self, password: str) -> None:
        header = VaultHeader.new(generate_salt())
        key = derive_key(password, header.salt, self._config.kdf_iterations)
        try:
            fd = os.open(
                self._path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE,
            )
            with os.fdopen(fd, "wb") as fp:
                os.fchmod(fp.fileno(), FILE_MODE)
                fp.write(header.pack())
        except OSError as err:
            secure_wipe(key)
            raise VaultIOError(
                f"Failed to create vault file {self._path}: {err}"
            ) from err
        self._activate(key, header, [])
        logger.info("Created new vault: %s", self._path)

    def _unlock(self, password: str) -> None:
        data = read_file(self._path)
        header = VaultHeader.unpack(data)
        key = derive_key(password, header.salt, self._config.kdf_iterations)
        try:
            entries = _decrypt_entries(data[HEADER_SIZE:], header, key)
        except Exception:
            secure_wipe(key)
            logger.info("Vault unlock failed: %s", self._path)
            raise
        self._activate(key, header, entries)
        logger.info(
            "Vault opened: %s (%d entries)", self._path, len(entries),
        )

    def _activate(
        self, key: bytearray, header: VaultHeader, entries: list[VaultEntry],
    ) -> None:
        self._key = key
        self._header = header
        self._entries = entries
        self._is_open = True

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def salt(self) -> bytes:
        self._ensure_open()
        return self._header.salt

    @property
    def entry_count(self) -> int:
        self._ensure_open()
        return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if not self._is_open:
            raise VaultStateError("Vault is not open")

    def _check_password(self, password: str) -> bool:
        """Compare the key derived from ``password`` with the held key."""
        candidate = derive_key(
            password, self._header.salt, self._config.kdf_iterations,
        )
        try:
            return hmac.compare_digest(candidate, self._key)
        finally:
            secure_wipe(candidate)

    def _auto_backup(self) -> None:
        if not self._config.auto_backup:
            return
        if not self._path.is_file():
            logger.warning(
                "Auto-backup skipped, vault file missing: %s", self._path,
            )
            return
        backup_vault(self._path)

    def _persist(
        self,
        header: VaultHeader,
        entries: list[VaultEntry],
        key: bytearray,
    ) -> None:
        """Write header and encrypted entries, replacing the vault file."""
        blob = b""
        if entries:
            plaintext = pack_entries(entries)
            try:
                blob = encrypt(plaintext, key)
            finally:
                secure_wipe(plaintext)
        try:
            write_private_file(self._path, header.pack() + blob)
        except VaultIOError as err:
            logger.error("Failed to save vault %s: %s", self._path, err)
            raise

    def _commit(self, entries: list[VaultEntry]) -> None:
        """Persist a new entry list, then adopt it in memory."""
        header = self._header._replace(entry_count=len(entries))
        self._persist(header, entries, self._key)
        self._header = header
        self._entries = entries

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def find(self, service: str, username: str) -> int:
        """Return the index of an entry, or -1 if absent."""
        self._ensure_open()
        for index, entry in enumerate(self._entries):
            if entry.matches(service, username):
                return index
        return -1

    def store(
        self,
        service: str,
        username: str,
        password: str,
        totp_secret: Optional[str] = None,
        force: bool = False,
        confirm: Optional[ConfirmCallback] = None,
    ) -> VaultEntry:
        """Add an entry, or overwrite the one with the same identity.

        Overwriting without ``force`` asks ``confirm`` (or the callback the
        vault was opened with) and aborts if it declines or is missing.

        Returns:
            The stored entry.

        Raises:
            ValidationError: If a field is empty, oversized or malformed.
            ConfirmationDeclined: If the overwrite was not confirmed.
        """
        self._ensure_open()
        try:
            entry = VaultEntry(
                service=service,
                username=username,
                password=password,
                totp_secret=totp_secret,
            )
        except pydantic.ValidationError as err:
            raise ValidationError(str(err)) from err

        index = self.find(service, username)
        if index >= 0 and not force:
            callback = confirm or self._confirm
            if callback is None or not callback(self._entries[index]):
                raise ConfirmationDeclined(
                    f"Overwrite of '{service}' ({username}) declined"
                )

        self._auto_backup()
        entries = list(self._entries)
        if index >= 0:
            entries[index] = entry
        else:
            entries.append(entry)
        self._commit(entries)

        logger.debug(
            "Vault %s: service=%s username=%s",
            "update" if index >= 0 else "store", service, username,
        )
        return entry

    def get(self, service: str, username: str) -> VaultEntry:
        """Return the entry for (service, username).

        Raises:
            NotFoundError: If no such entry exists.
        """
        index = self.find(service, username)
        if index < 0:
            raise NotFoundError(f"Entry not found: {service} ({username})")
        return self._entries[index]

    def list_entries(self) -> list[VaultEntry]:
        """Return all entries in insertion order."""
        self._ensure_open()
        return list(self._entries)

    def remove(self, service: str, username: str) -> None:
        """Delete the entry for (service, username), keeping the order.

        Raises:
            NotFoundError: If no such entry exists.
        """
        index = self.find(service, username)
        if index < 0:
            raise NotFoundError(f"Entry not found: {service} ({username})")
        self._auto_backup()
        self._commit(self._entries[:index] + self._entries[index + 1:])
        logger.debug("Vault remove: service=%s username=%s", service, username)

    def change_master_password(self, old_password: str, new_password: str) -> None:
        """Re-encrypt the vault under a new password and a fresh salt."""
        key_rotation.rotate_master_password(self, old_password, new_password)

    def backup(self) -> Path:
        """Snapshot the vault file into its ``.backup`` slot."""
        self._ensure_open()
        return backup_vault(self._path)

    @staticmethod
    def restore(backup_path: PathLike, vault_path: PathLike) -> Path:
        """Copy a backup over a vault file; does not reopen it."""
        return restore_vault(backup_path, vault_path)

    def export_entries(self, output_path: PathLike, master_password: str) -> int:
        """Write all entries as plaintext JSON; see :mod:`.transfer`."""
        return transfer.export_entries(self, output_path, master_password)

    def import_entries(
        self,
        input_path: PathLike,
        master_password: str,
        force: bool = False,
    ) -> int:
        """Merge entries from a JSON export; see :mod:`.transfer`."""
        return transfer.import_entries(
            self, input_path, master_password, force=force,
        )

    def close(self) -> None:
        """Wipe the key, drop decrypted entries and reset the header."""
        if not self._is_open:
            return
        secure_wipe(self._key)
        self._key = None
        self._entries.clear()
        self._header = None
        self._is_open = False
        logger.info("Vault closed: %s", self._path)
