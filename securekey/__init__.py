"""SecureKey.

Local, single-user encrypted credential vault with a TOTP engine.
"""
from .version import __version__
from .exceptions import (
    SecureKeyError,
    FormatError,
    CryptoError,
    VaultIOError,
    NotFoundError,
    ValidationError,
    ConfirmationDeclined,
    VaultStateError,
)
from .vault import Vault, VaultConfig, VaultEntry
from .totp import TotpConfig, generate_code, validate_code

__all__ = [
    "__version__",
    "SecureKeyError",
    "FormatError",
    "CryptoError",
    "VaultIOError",
    "NotFoundError",
    "ValidationError",
    "ConfirmationDeclined",
    "VaultStateError",
    "Vault",
    "VaultConfig",
    "VaultEntry",
    "TotpConfig",
    "generate_code",
    "validate_code",
]
