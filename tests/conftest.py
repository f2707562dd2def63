"""Shared fixtures for the SecureKey test-suite."""
import pytest

from securekey.vault import Vault, VaultConfig

MASTER_PASSWORD = "Correct-Horse9!"
OTHER_PASSWORD = "Wrong-Battery7?"
TOTP_SECRET = "JBSWY3DPEHPK3PXP"


@pytest.fixture
def vault_path(tmp_path):
    """Location of a not-yet-created vault file."""
    return tmp_path / "securekey" / "vault.dat"


@pytest.fixture
def config(vault_path):
    """Vault settings rooted in the temporary directory."""
    return VaultConfig(vault_path=vault_path)


@pytest.fixture
def vault(config):
    """A freshly created, open vault; closed after the test."""
    handle = Vault.open_or_create(None, MASTER_PASSWORD, config=config)
    yield handle
    handle.close()


@pytest.fixture
def populated_vault(vault):
    """An open vault holding three entries."""
    vault.store("GitHub", "dev@example.com", "GhPass1")
    vault.store("Gmail", "dev@gmail.com", "GmPass2", totp_secret=TOTP_SECRET)
    vault.store("Bank", "dev", "BkPass3")
    return vault
