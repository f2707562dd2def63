"""
SecureKey exceptions.

Every error raised by the vault and TOTP engines derives from
``SecureKeyError`` so callers can report failures without aborting.
"""


class SecureKeyError(Exception):
    """Base class for all SecureKey errors."""


class FormatError(SecureKeyError):
    """Vault file is truncated or carries an unknown magic/version."""


class CryptoError(SecureKeyError):
    """Key derivation or decryption failed.

    A decrypted block of the wrong size is also reported here: without an
    authentication tag it is the only signal of a wrong master password.
    """


class VaultIOError(SecureKeyError):
    """Vault or backup file could not be created, read or written."""


class NotFoundError(SecureKeyError):
    """No entry exists for the given service and username."""


class ValidationError(SecureKeyError, ValueError):
    """A field is malformed or oversized, or base32 input is invalid."""


class ConfirmationDeclined(SecureKeyError):
    """The overwrite of an existing entry was not confirmed."""


class VaultStateError(SecureKeyError):
    """An operation was attempted on a closed vault handle."""
