"""
Vault File Format — Header and entry record codec.

Layout (little-endian):
    [magic "SKEY" 4B][version uint32][salt 16B][entry_count uint32]
    [iv 16B][AES-256-CBC ciphertext of entry_count * 832-byte records]

Each record is ``service[256] username[256] password[256] totp_secret[64]``,
UTF-8 and NUL padded. An empty vault is stored as the header alone.
"""
import struct
from typing import NamedTuple, Optional

from pydantic import BaseModel, ValidationInfo, field_validator

from ..exceptions import CryptoError, FormatError
from ..totp import base32_decode
from .crypto import SALT_SIZE

VAULT_MAGIC = b"SKEY"
VAULT_VERSION = 1

SERVICE_LEN = 256
USERNAME_LEN = 256
PASSWORD_LEN = 256
TOTP_LEN = 64

_HEADER = struct.Struct("<4sI16sI")
_ENTRY = struct.Struct(f"<{SERVICE_LEN}s{USERNAME_LEN}s{PASSWORD_LEN}s{TOTP_LEN}s")

HEADER_SIZE = _HEADER.size
ENTRY_SIZE = _ENTRY.size


class VaultHeader(NamedTuple):
    """Fixed-size vault file header."""

    magic: bytes
    version: int
    salt: bytes
    entry_count: int

    @classmethod
    def new(cls, salt: bytes, entry_count: int = 0) -> "VaultHeader":
        if len(salt) != SALT_SIZE:
            raise ValueError(f"Vault salt must be {SALT_SIZE} bytes")
        return cls(VAULT_MAGIC, VAULT_VERSION, salt, entry_count)

    def pack(self) -> bytes:
        return _HEADER.pack(self.magic, self.version, self.salt, self.entry_count)

    @classmethod
    def unpack(cls, data: bytes) -> "VaultHeader":
        """Parse and validate a header.

        Raises:
            FormatError: If the header is truncated or has an unknown
                magic/version.
        """
        if len(data) < HEADER_SIZE:
            raise FormatError(
                f"Vault header truncated: {len(data)} bytes "
                f"(expected {HEADER_SIZE})"
            )
        header = cls(*_HEADER.unpack_from(data))
        if header.magic != VAULT_MAGIC:
            raise FormatError("Invalid vault file format")
        if header.version != VAULT_VERSION:
            raise FormatError(f"Unsupported vault version: {header.version}")
        return header


def _check_field(name: str, value: str, size: int) -> str:
    if "\x00" in value:
        raise ValueError(f"{name} cannot contain NUL characters")
    encoded = len(value.encode("utf-8"))
    if encoded > size - 1:
        raise ValueError(
            f"{name} cannot exceed {size - 1} bytes, got {encoded}"
        )
    return value


class VaultEntry(BaseModel):
    """One stored credential; identity is (service, username)."""

    service: str
    username: str
    password: str
    totp_secret: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("service", "username")
    @classmethod
    def validate_identity(cls, v: str, info: ValidationInfo) -> str:
        if not v:
            raise ValueError(f"{info.field_name} cannot be empty")
        return _check_field(info.field_name, v, SERVICE_LEN)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_field("password", v, PASSWORD_LEN)

    @field_validator("totp_secret")
    @classmethod
    def validate_totp_secret(cls, v: Optional[str]) -> Optional[str]:
        """Empty secrets mean no TOTP; others must be valid base32."""
        if not v:
            return None
        _check_field("totp_secret", v, TOTP_LEN)
        if not base32_decode(v):
            raise ValueError("totp_secret decodes to an empty key")
        return v

    @property
    def has_totp(self) -> bool:
        return self.totp_secret is not None

    def matches(self, service: str, username: str) -> bool:
        return self.service == service and self.username == username


def _encode_field(value: Optional[str]) -> bytes:
    return (value or "").encode("utf-8")


def _decode_field(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8")


def pack_entries(entries: list[VaultEntry]) -> bytearray:
    """Serialize entries into one contiguous plaintext block."""
    block = bytearray(ENTRY_SIZE * len(entries))
    for index, entry in enumerate(entries):
        _ENTRY.pack_into(
            block,
            index * ENTRY_SIZE,
            _encode_field(entry.service),
            _encode_field(entry.username),
            _encode_field(entry.password),
            _encode_field(entry.totp_secret),
        )
    return block


def unpack_entries(block: bytearray, entry_count: int) -> list[VaultEntry]:
    """Parse a decrypted block holding ``entry_count`` records.

    Raises:
        CryptoError: If the block size or contents do not match, the
            symptom of decrypting under the wrong key.
    """
    if len(block) != entry_count * ENTRY_SIZE:
        raise CryptoError("Decryption failed or wrong password")
    entries = []
    try:
        for fields in _ENTRY.iter_unpack(block):
            service, username, password, totp_secret = (
                _decode_field(raw) for raw in fields
            )
            entries.append(VaultEntry.model_construct(
                service=service,
                username=username,
                password=password,
                totp_secret=totp_secret or None,
            ))
    except UnicodeDecodeError as err:
        raise CryptoError("Decryption failed or wrong password") from err
    return entries
