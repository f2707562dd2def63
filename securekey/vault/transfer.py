"""
Vault Transfer — JSON export and import of entries.

Export format (orjson, indented):
    {"format": "securekey-export", "version": 1,
     "entries": [{"service": ..., "username": ..., "password": ...,
                  "totp_secret": ... | null}, ...]}

Security Note:
    Exports are plaintext. They are written owner-only, but the caller is
    responsible for deleting them once used.
"""
import logging
from typing import TYPE_CHECKING, Any

import orjson
import pydantic

from ..exceptions import CryptoError, FormatError, ValidationError
from .backup import PathLike, read_file, write_private_file
from .format import VaultEntry

if TYPE_CHECKING:
    from .store import Vault

logger = logging.getLogger("securekey.vault")

EXPORT_FORMAT = "securekey-export"
EXPORT_VERSION = 1


def _authorize(vault: "Vault", master_password: str) -> None:
    vault._ensure_open()
    if not master_password:
        raise ValidationError("Master password is required")
    if not vault._check_password(master_password):
        raise CryptoError("Wrong master password")


def serialize_entries(entries: list[VaultEntry]) -> bytes:
    """Serialize entries to an export document."""
    document = {
        "format": EXPORT_FORMAT,
        "version": EXPORT_VERSION,
        "entries": [entry.model_dump() for entry in entries],
    }
    return orjson.dumps(document, option=orjson.OPT_INDENT_2)


def deserialize_entries(data: bytes) -> list[VaultEntry]:
    """Parse and validate an export document.

    Raises:
        FormatError: If the document is not a SecureKey export.
        ValidationError: If an entry is malformed.
    """
    try:
        document: Any = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise FormatError(f"Invalid export document: {err}") from err
    if (
        not isinstance(document, dict)
        or document.get("format") != EXPORT_FORMAT
        or not isinstance(document.get("entries"), list)
    ):
        raise FormatError("Not a SecureKey export document")
    if document.get("version") != EXPORT_VERSION:
        raise FormatError(
            f"Unsupported export version: {document.get('version')}"
        )
    entries = []
    for position, item in enumerate(document["entries"]):
        try:
            entries.append(VaultEntry.model_validate(item))
        except pydantic.ValidationError as err:
            raise ValidationError(
                f"Invalid entry at position {position}: {err}"
            ) from err
    return entries


def export_entries(
    vault: "Vault", output_path: PathLike, master_password: str,
) -> int:
    """Write every entry of an open vault to a plaintext JSON file.

    Returns:
        Number of exported entries.

    Raises:
        CryptoError: If the master password does not match.
        VaultIOError: If the file cannot be written.
    """
    _authorize(vault, master_password)
    entries = vault.list_entries()
    write_private_file(output_path, serialize_entries(entries))
    logger.info("Exported %d entries to %s", len(entries), output_path)
    return len(entries)


def import_entries(
    vault: "Vault",
    input_path: PathLike,
    master_password: str,
    force: bool = False,
) -> int:
    """Merge entries from an export file into an open vault.

    Entries whose (service, username) already exists are overwritten only
    with ``force``; otherwise they are skipped. The vault is backed up and
    written once.

    Returns:
        Number of entries added or overwritten.
    """
    _authorize(vault, master_password)
    incoming = deserialize_entries(read_file(input_path))

    merged = vault.list_entries()
    written = 0
    for entry in incoming:
        index = next(
            (i for i, current in enumerate(merged)
             if current.matches(entry.service, entry.username)),
            -1,
        )
        if index < 0:
            merged.append(entry)
        elif force:
            merged[index] = entry
        else:
            logger.debug(
                "Import skipped existing entry: service=%s username=%s",
                entry.service, entry.username,
            )
            continue
        written += 1

    if written:
        vault._auto_backup()
        vault._commit(merged)
    logger.info("Imported %d entries from %s", written, input_path)
    return written
