"""
Tests for the vault file format.

Tests cover:
- Header packing and validation
- Entry field validation
- Fixed-size record packing/unpacking
"""
import pydantic
import pytest

from securekey.exceptions import CryptoError, FormatError
from securekey.vault.format import (
    ENTRY_SIZE,
    HEADER_SIZE,
    VAULT_MAGIC,
    VAULT_VERSION,
    VaultEntry,
    VaultHeader,
    pack_entries,
    unpack_entries,
)

SALT = bytes(range(16))


class TestVaultHeader:
    """Tests for VaultHeader."""

    def test_sizes(self):
        """Header is 28 bytes and records are 832 bytes."""
        assert HEADER_SIZE == 28
        assert ENTRY_SIZE == 832

    def test_layout(self):
        """Fields are packed little-endian in declaration order."""
        data = VaultHeader.new(SALT, entry_count=3).pack()
        assert data[:4] == b"SKEY"
        assert data[4:8] == (1).to_bytes(4, "little")
        assert data[8:24] == SALT
        assert data[24:28] == (3).to_bytes(4, "little")

    def test_round_trip(self):
        """unpack(pack(header)) == header."""
        header = VaultHeader.new(SALT, entry_count=7)
        assert VaultHeader.unpack(header.pack()) == header
        assert header.magic == VAULT_MAGIC
        assert header.version == VAULT_VERSION

    def test_unpack_ignores_trailing_body(self):
        """The entry block after the header is not part of it."""
        header = VaultHeader.new(SALT, entry_count=1)
        assert VaultHeader.unpack(header.pack() + b"\x01" * 64) == header

    def test_truncated(self):
        """Short data is a format error."""
        with pytest.raises(FormatError):
            VaultHeader.unpack(VaultHeader.new(SALT).pack()[:-1])

    def test_bad_magic(self):
        """Unknown magic is rejected."""
        data = b"XKEY" + VaultHeader.new(SALT).pack()[4:]
        with pytest.raises(FormatError):
            VaultHeader.unpack(data)

    def test_bad_version(self):
        """Unknown versions are rejected, not repaired."""
        header = VaultHeader(VAULT_MAGIC, 2, SALT, 0)
        with pytest.raises(FormatError):
            VaultHeader.unpack(header.pack())

    def test_salt_size(self):
        """Salts must be 16 bytes."""
        with pytest.raises(ValueError):
            VaultHeader.new(b"short")


class TestVaultEntry:
    """Tests for VaultEntry validation."""

    def test_valid_entry(self):
        """Regular fields are accepted."""
        entry = VaultEntry(service="GitHub", username="dev", password="pw")
        assert entry.totp_secret is None
        assert not entry.has_totp

    def test_totp_entry(self):
        """Base32 TOTP secrets are accepted."""
        entry = VaultEntry(
            service="Gmail", username="dev", password="pw",
            totp_secret="JBSWY3DPEHPK3PXP",
        )
        assert entry.has_totp

    def test_empty_totp_means_none(self):
        """An empty TOTP secret is stored as no secret."""
        entry = VaultEntry(service="s", username="u", password="p", totp_secret="")
        assert entry.totp_secret is None

    def test_max_field_lengths(self):
        """255 bytes fit a field, 63 bytes fit the TOTP secret."""
        VaultEntry(service="s" * 255, username="u" * 255, password="p" * 255)
        VaultEntry(service="s", username="u", password="p", totp_secret="A" * 56)

    @pytest.mark.parametrize("field", ["service", "username", "password"])
    def test_oversized_field(self, field):
        """256 bytes do not fit, they are not truncated."""
        values = {"service": "s", "username": "u", "password": "p"}
        values[field] = "x" * 256
        with pytest.raises(pydantic.ValidationError):
            VaultEntry(**values)

    def test_multibyte_length_counts_bytes(self):
        """Limits apply to the UTF-8 encoding."""
        with pytest.raises(pydantic.ValidationError):
            VaultEntry(service="ñ" * 128, username="u", password="p")

    def test_oversized_totp(self):
        """64 characters do not fit the TOTP field."""
        with pytest.raises(pydantic.ValidationError):
            VaultEntry(service="s", username="u", password="p", totp_secret="A" * 64)

    def test_invalid_totp(self):
        """Non-base32 TOTP secrets are rejected."""
        with pytest.raises(pydantic.ValidationError):
            VaultEntry(service="s", username="u", password="p", totp_secret="not base32!")

    @pytest.mark.parametrize("field", ["service", "username"])
    def test_empty_identity(self, field):
        """Service and username are required."""
        values = {"service": "s", "username": "u", "password": "p"}
        values[field] = ""
        with pytest.raises(pydantic.ValidationError):
            VaultEntry(**values)

    def test_nul_character(self):
        """Embedded NULs would truncate the record."""
        with pytest.raises(pydantic.ValidationError):
            VaultEntry(service="s", username="u", password="p\x00q")

    def test_frozen(self):
        """Entries are immutable."""
        entry = VaultEntry(service="s", username="u", password="p")
        with pytest.raises(pydantic.ValidationError):
            entry.password = "changed"

    def test_matches(self):
        """Identity is (service, username)."""
        entry = VaultEntry(service="s", username="u", password="p")
        assert entry.matches("s", "u")
        assert not entry.matches("s", "other")


class TestRecords:
    """Tests for pack_entries / unpack_entries."""

    def test_block_size(self):
        """The block holds one fixed-size record per entry."""
        entries = [
            VaultEntry(service="a", username="1", password="x"),
            VaultEntry(service="b", username="2", password="y", totp_secret="MZXW6YTB"),
        ]
        block = pack_entries(entries)
        assert len(block) == 2 * ENTRY_SIZE
        assert unpack_entries(block, 2) == entries

    def test_unicode_fields(self):
        """UTF-8 fields survive a round-trip."""
        entries = [VaultEntry(service="Señor ☃", username="ü", password="密码")]
        assert unpack_entries(pack_entries(entries), 1) == entries

    def test_empty_block(self):
        """No entries pack to an empty block."""
        assert pack_entries([]) == bytearray()
        assert unpack_entries(bytearray(), 0) == []

    def test_size_mismatch(self):
        """A block of the wrong size signals a wrong key."""
        block = pack_entries([VaultEntry(service="a", username="b", password="c")])
        with pytest.raises(CryptoError):
            unpack_entries(block, 2)
        with pytest.raises(CryptoError):
            unpack_entries(block[:-1], 1)

    def test_invalid_utf8(self):
        """Garbage that is not UTF-8 signals a wrong key."""
        block = bytearray(b"\xff" * ENTRY_SIZE)
        with pytest.raises(CryptoError):
            unpack_entries(block, 1)
