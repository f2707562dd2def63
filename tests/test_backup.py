"""
Tests for single-slot backup and restore.

Tests cover:
- Byte-for-byte snapshots with owner-only permissions
- Auto-backup before mutations
- Restore reproducing a snapshot
"""
import stat

import pytest

from securekey.exceptions import VaultIOError
from securekey.vault import Vault, backup_vault, restore_vault
from securekey.vault.backup import backup_path_for, write_private_file

from .conftest import MASTER_PASSWORD


class TestBackup:
    """Tests for backup_vault and Vault.backup."""

    def test_backup_path(self, tmp_path):
        """The backup slot is the vault path plus '.backup'."""
        assert backup_path_for(tmp_path / "vault.dat") == tmp_path / "vault.dat.backup"

    def test_backup_fidelity(self, populated_vault, vault_path):
        """The backup equals the vault bytes at backup time."""
        target = populated_vault.backup()
        assert target == backup_path_for(vault_path)
        assert target.read_bytes() == vault_path.read_bytes()
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_single_slot(self, populated_vault, vault_path):
        """A new backup overwrites the previous one."""
        populated_vault.backup()
        populated_vault.store("Extra", "user", "pw")
        populated_vault.backup()
        assert backup_path_for(vault_path).read_bytes() == vault_path.read_bytes()
        assert list(vault_path.parent.glob("*.backup")) == [backup_path_for(vault_path)]

    def test_auto_backup_before_store(self, populated_vault, vault_path):
        """Mutations snapshot the previous file first."""
        before = vault_path.read_bytes()
        populated_vault.store("Extra", "user", "pw")
        assert backup_path_for(vault_path).read_bytes() == before

    def test_auto_backup_before_remove(self, populated_vault, vault_path):
        """Removals snapshot the previous file first."""
        before = vault_path.read_bytes()
        populated_vault.remove("Bank", "dev")
        assert backup_path_for(vault_path).read_bytes() == before

    def test_backup_missing_vault(self, tmp_path):
        """There is nothing to back up without a vault."""
        with pytest.raises(VaultIOError):
            backup_vault(tmp_path / "missing.dat")


class TestRestore:
    """Tests for restore_vault and Vault.restore."""

    def test_restore_snapshot(self, populated_vault, vault_path, config):
        """Restoring reproduces the snapshot exactly."""
        snapshot = populated_vault.backup()
        expected = snapshot.read_bytes()
        populated_vault.remove("GitHub", "dev@example.com")
        populated_vault.close()

        Vault.restore(snapshot, vault_path)
        assert vault_path.read_bytes() == expected
        with Vault.open_or_create(None, MASTER_PASSWORD, config=config) as handle:
            assert handle.entry_count == 3
            assert handle.get("GitHub", "dev@example.com").password == "GhPass1"

    def test_restore_to_new_path(self, populated_vault, tmp_path):
        """Backups can be restored elsewhere, owner-only."""
        snapshot = populated_vault.backup()
        target = restore_vault(snapshot, tmp_path / "copy.dat")
        assert target.read_bytes() == snapshot.read_bytes()
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_restore_missing_backup(self, tmp_path):
        """A missing backup is an IO error."""
        with pytest.raises(VaultIOError):
            restore_vault(tmp_path / "missing.backup", tmp_path / "vault.dat")


class TestPrivateWrites:
    """Tests for write_private_file."""

    def test_replaces_content(self, tmp_path):
        """Content is replaced entirely, never appended."""
        path = tmp_path / "file.bin"
        write_private_file(path, b"long original content")
        write_private_file(path, b"short")
        assert path.read_bytes() == b"short"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_no_temporary_files_left(self, tmp_path):
        """Temporary files are renamed away."""
        write_private_file(tmp_path / "file.bin", b"data")
        assert [p.name for p in tmp_path.iterdir()] == ["file.bin"]

    def test_missing_directory(self, tmp_path):
        """Writes into missing directories fail cleanly."""
        with pytest.raises(VaultIOError):
            write_private_file(tmp_path / "nope" / "file.bin", b"data")
