"""
Vault Crypto Core — Key derivation, encryption/decryption and memory wiping.

Implements the at-rest protection of the vault file:
- Key derivation: PBKDF2-HMAC-SHA256(master_password, vault_salt) → 32-byte key
- Encryption: AES-256-CBC with PKCS7 padding → [iv 16B][ciphertext]

Security Note:
    Never log plaintext, ciphertext or key values.
    CBC carries no authentication tag; a wrong key is detected only when the
    padding is invalid or the decrypted size is not the expected one.
"""
import os
import logging
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import CryptoError

logger = logging.getLogger("securekey.vault")

KEY_LENGTH = 32  # AES-256
SALT_SIZE = 16
IV_SIZE = 16
BLOCK_SIZE = 128  # AES block size in bits
DEFAULT_ITERATIONS = 100_000

Buffer = Union[bytearray, memoryview]


# ---------------------------------------------------------------------------
# Memory hygiene
# ---------------------------------------------------------------------------

def secure_wipe(buffer: Optional[Buffer]) -> None:
    """Overwrite a mutable buffer with zeros, in place.

    Only mutable buffers can be wiped; immutable ``bytes``/``str`` copies
    made by the runtime stay in memory until collected.

    Args:
        buffer: bytearray or writable memoryview holding sensitive data.
    """
    if buffer is None:
        return
    if isinstance(buffer, bytes):
        raise TypeError("Immutable bytes cannot be wiped; use a bytearray")
    buffer[:] = bytes(len(buffer))


def generate_salt() -> bytes:
    """Generate a cryptographically random vault salt."""
    return os.urandom(SALT_SIZE)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(
    password: str,
    salt: bytes,
    iterations: int = DEFAULT_ITERATIONS,
) -> bytearray:
    """Derive a 32-byte vault key using PBKDF2-HMAC-SHA256.

    The same (password, salt, iterations) always yields the same key.

    Args:
        password: Master password.
        salt: Vault salt persisted in the header.
        iterations: PBKDF2 work factor.

    Returns:
        Derived key as a bytearray so the caller can wipe it.

    Raises:
        CryptoError: If the underlying primitive fails.
    """
    secret = bytearray(password.encode("utf-8"))
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=bytes(salt),
            iterations=iterations,
        )
        return bytearray(kdf.derive(secret))
    except (TypeError, ValueError) as err:
        raise CryptoError(f"Key derivation failed: {err}") from err
    finally:
        secure_wipe(secret)


# ---------------------------------------------------------------------------
# Symmetric encryption
# ---------------------------------------------------------------------------

def encrypt(plaintext: Buffer, key: Buffer) -> bytes:
    """Encrypt with AES-256-CBC under a fresh random IV.

    Format: [iv 16B][ciphertext, PKCS7 padded]

    Args:
        plaintext: Data to encrypt.
        key: 32-byte vault key.

    Returns:
        iv || ciphertext.
    """
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(BLOCK_SIZE).padder()
    padded = bytearray(padder.update(plaintext))
    padded += padder.finalize()
    try:
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ct = encryptor.update(padded) + encryptor.finalize()
    except (TypeError, ValueError) as err:
        raise CryptoError(f"Encryption failed: {err}") from err
    finally:
        secure_wipe(padded)
    return iv + ct


def decrypt(blob: bytes, key: Buffer) -> bytearray:
    """Decrypt an ``iv || ciphertext`` blob produced by :func:`encrypt`.

    Args:
        blob: Encrypted data.
        key: 32-byte vault key.

    Returns:
        Plaintext as a bytearray so the caller can wipe it.

    Raises:
        CryptoError: If the blob is truncated or the cipher/padding fails.
    """
    if len(blob) < IV_SIZE:
        raise CryptoError(
            f"Encrypted data too short: {len(blob)} bytes "
            f"(minimum {IV_SIZE})"
        )
    iv = blob[:IV_SIZE]
    ct = blob[IV_SIZE:]
    padded = bytearray()
    plaintext = bytearray()
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded += decryptor.update(ct)
        padded += decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE).unpadder()
        plaintext += unpadder.update(padded)
        plaintext += unpadder.finalize()
    except (TypeError, ValueError) as err:
        secure_wipe(plaintext)
        raise CryptoError("Decryption failed") from err
    finally:
        secure_wipe(padded)
    return plaintext
