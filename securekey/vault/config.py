"""
Vault Configuration — Default locations and validated settings.

Reads overrides from environment variables:
    SECUREKEY_HOME = <directory holding the vault, default ~/.securekey>
    SECUREKEY_VAULT_PATH = <vault file, default $SECUREKEY_HOME/vault.dat>
    SECUREKEY_BACKUP_DIR = <backups directory, default <vault dir>/backups>
    SECUREKEY_KDF_ITERATIONS = <PBKDF2 iterations, default 100000>
    SECUREKEY_AUTO_BACKUP = <1/0, true/false, default true>

Security Note:
    The iteration count is not persisted in the vault header. Changing it
    makes existing vaults unreadable with the new setting.
"""
import os
import logging
from pathlib import Path
from typing import Optional, Union

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from ..exceptions import ValidationError, VaultIOError
from .crypto import DEFAULT_ITERATIONS

logger = logging.getLogger("securekey.vault")

DEFAULT_HOME = "~/.securekey"
VAULT_FILENAME = "vault.dat"
BACKUP_DIRNAME = "backups"

_TRUE_VALUES = ("1", "true", "yes", "on")


def default_home() -> Path:
    """Return the per-user configuration directory."""
    return Path(os.environ.get("SECUREKEY_HOME", DEFAULT_HOME)).expanduser()


def default_vault_path() -> Path:
    """Return the default vault file location."""
    return default_home() / VAULT_FILENAME


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    vault_path: Path = Field(default_factory=default_vault_path)
    backup_dir: Optional[Path] = None
    kdf_iterations: int = Field(default=DEFAULT_ITERATIONS, ge=DEFAULT_ITERATIONS)
    auto_backup: bool = True

    @field_validator("vault_path", "backup_dir")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        """Expand ``~`` in configured paths."""
        if v is None:
            return v
        return Path(v).expanduser()

    @model_validator(mode="after")
    def default_backup_dir(self) -> "VaultConfig":
        """Place backups beside the vault unless configured otherwise."""
        if self.backup_dir is None:
            self.backup_dir = self.vault_path.parent / BACKUP_DIRNAME
        return self

    @classmethod
    def from_env(
        cls, vault_path: Optional[Union[str, os.PathLike]] = None,
    ) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Args:
            vault_path: Vault file overriding ``SECUREKEY_VAULT_PATH``; the
                other settings still come from the environment.

        Returns:
            Populated VaultConfig instance.

        Raises:
            ValidationError: If an environment value is malformed.
        """
        values: dict = {}
        if vault_path is None:
            vault_path = os.environ.get("SECUREKEY_VAULT_PATH")
        values["vault_path"] = vault_path or default_vault_path()
        backup_dir = os.environ.get("SECUREKEY_BACKUP_DIR")
        if backup_dir:
            values["backup_dir"] = backup_dir
        iterations = os.environ.get("SECUREKEY_KDF_ITERATIONS")
        if iterations:
            try:
                values["kdf_iterations"] = int(iterations)
            except ValueError as err:
                raise ValidationError(
                    f"SECUREKEY_KDF_ITERATIONS must be an integer: {iterations!r}"
                ) from err
        auto_backup = os.environ.get("SECUREKEY_AUTO_BACKUP")
        if auto_backup is not None:
            values["auto_backup"] = auto_backup.strip().lower() in _TRUE_VALUES
        try:
            return cls(**values)
        except pydantic.ValidationError as err:
            raise ValidationError(f"Invalid vault configuration: {err}") from err


def ensure_directories(config: VaultConfig) -> None:
    """Create the vault and backups directories with owner-only access.

    Raises:
        VaultIOError: If a directory cannot be created.
    """
    for directory in (config.vault_path.parent, config.backup_dir):
        if directory.is_dir():
            continue
        try:
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            os.chmod(directory, 0o700)
        except OSError as err:
            raise VaultIOError(
                f"Failed to create directory {directory}: {err}"
            ) from err
        logger.debug("Created directory %s", directory)
