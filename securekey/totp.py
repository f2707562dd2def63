"""
TOTP Engine — Base32 codec and time-based one-time passwords.

Implements RFC 4226 (HOTP) dynamic truncation and RFC 6238 (TOTP) time
counters, used to display second-factor codes for vault entries.

Baseline behavior: 6 digits, 30-second steps, HMAC-SHA-1, and validation
that tolerates one step of clock skew on the past side only. ``TotpConfig``
widens this (digit count, SHA-256/512, symmetric window).

Security Note:
    Never log secrets or codes.
"""
import re
import hmac
import time
import base64
import struct
import hashlib
import secrets
import logging
import binascii
from typing import Optional, Union
from urllib.parse import quote, urlencode

from pydantic import BaseModel, Field, field_validator

from .exceptions import ValidationError

logger = logging.getLogger("securekey.totp")

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
BASE32_PADDING = "="

MIN_SECRET_BYTES = 10
# 32 bytes encode to 56 characters, the largest that fits an entry's TOTP field.
MAX_BASE32_SECRET_BYTES = 32
DEFAULT_SECRET_BYTES = 20

_IGNORED_CHARS = re.compile(r"[\s\-=]")
_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


class TotpConfig(BaseModel):
    """Validated TOTP parameters.

    ``window=None`` keeps the baseline past-only tolerance of one step;
    an integer enables a symmetric ``±window`` search.
    """

    digits: int = Field(default=6, ge=6, le=10)
    period: int = Field(default=30, ge=1)
    algorithm: str = Field(default="sha1")
    window: Optional[int] = Field(default=None, ge=0, le=10)

    model_config = {"frozen": True}

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Validate the HMAC digest is supported."""
        v = v.lower()
        if v not in _ALGORITHMS:
            raise ValueError(f"Unsupported TOTP algorithm: {v}")
        return v


DEFAULT_CONFIG = TotpConfig()


# ---------------------------------------------------------------------------
# Base32 codec
# ---------------------------------------------------------------------------

def base32_encode(data: bytes) -> str:
    """Encode bytes as RFC 4648 base32, ``=`` padded to a multiple of 8."""
    return base64.b32encode(bytes(data)).decode("ascii")


def base32_decode(encoded: str) -> bytes:
    """Decode base32 text, skipping whitespace, dashes and padding.

    Input is case-insensitive.

    Raises:
        ValidationError: On an unknown symbol or an impossible length.
    """
    if not isinstance(encoded, str):
        raise ValidationError("Base32 input must be a string")
    cleaned = _IGNORED_CHARS.sub("", encoded).upper()
    for ch in cleaned:
        if ch not in BASE32_ALPHABET:
            raise ValidationError(f"Invalid base32 character: {ch!r}")
    if len(cleaned) % 8 in (1, 3, 6):
        raise ValidationError(
            f"Invalid base32 length: {len(cleaned)} symbols"
        )
    cleaned += BASE32_PADDING * (-len(cleaned) % 8)
    try:
        return base64.b32decode(cleaned)
    except binascii.Error as err:
        raise ValidationError(f"Invalid base32 input: {err}") from err


# ---------------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------------

def generate_secret(length: int = DEFAULT_SECRET_BYTES) -> bytes:
    """Generate a random raw TOTP key of ``length`` bytes (at least 10)."""
    if length < MIN_SECRET_BYTES:
        raise ValidationError(
            f"TOTP secret must be at least {MIN_SECRET_BYTES} bytes, "
            f"got {length}"
        )
    return secrets.token_bytes(length)


def generate_secret_base32(length: int = DEFAULT_SECRET_BYTES) -> str:
    """Generate a random TOTP key and return it base32-encoded."""
    if length > MAX_BASE32_SECRET_BYTES:
        raise ValidationError(
            f"TOTP secret cannot exceed {MAX_BASE32_SECRET_BYTES} bytes, "
            f"got {length}"
        )
    return base32_encode(generate_secret(length))


# ---------------------------------------------------------------------------
# Code generation
# ---------------------------------------------------------------------------

def hotp(
    key: bytes,
    counter: int,
    digits: int = 6,
    algorithm: str = "sha1",
) -> int:
    """Compute an HOTP value (RFC 4226) for a counter.

    Args:
        key: Raw shared secret.
        counter: Moving factor, packed as an 8-byte big-endian integer.
        digits: Number of decimal digits kept.
        algorithm: HMAC digest name.

    Returns:
        Integer code in ``[0, 10**digits)``.
    """
    if counter < 0:
        raise ValidationError(f"Counter must be non-negative, got {counter}")
    digest = hmac.new(
        bytes(key), struct.pack(">Q", counter), _ALGORITHMS[algorithm],
    ).digest()
    # dynamic truncation
    offset = digest[-1] & 0x0F
    binary = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return binary % (10 ** digits)


def time_counter(timestamp: Union[int, float], period: int = 30) -> int:
    """Return the TOTP time step for a Unix timestamp."""
    if timestamp < 0:
        raise ValidationError(f"Timestamp must be non-negative, got {timestamp}")
    return int(timestamp // period)


def generate_code(
    secret: str,
    timestamp: Optional[Union[int, float]] = None,
    config: Optional[TotpConfig] = None,
) -> int:
    """Generate the TOTP code of a base32 secret at ``timestamp``.

    A pure function of (secret, timestamp, config).

    Args:
        secret: Base32-encoded shared secret.
        timestamp: Unix time; defaults to now.
        config: TOTP parameters; defaults to 6 digits, 30 s, SHA-1.

    Returns:
        Integer code; use :func:`format_code` for display.
    """
    config = config or DEFAULT_CONFIG
    if timestamp is None:
        timestamp = time.time()
    key = base32_decode(secret)
    if not key:
        raise ValidationError("TOTP secret is empty")
    return hotp(
        key,
        time_counter(timestamp, config.period),
        config.digits,
        config.algorithm,
    )


def format_code(code: int, digits: int = 6) -> str:
    """Render a code left-padded with zeros."""
    return str(code).zfill(digits)


def _normalize_code(code: Union[int, str], digits: int) -> int:
    if isinstance(code, bool):
        raise ValidationError("TOTP code must be an integer or digit string")
    if isinstance(code, str):
        text = code.replace(" ", "")
        if not (text.isascii() and text.isdigit()) or len(text) != digits:
            raise ValidationError(
                f"TOTP code must be exactly {digits} digits"
            )
        return int(text)
    if isinstance(code, int):
        if not 0 <= code < 10 ** digits:
            raise ValidationError(
                f"TOTP code out of range for {digits} digits: {code}"
            )
        return code
    raise ValidationError("TOTP code must be an integer or digit string")


def validate_code(
    secret: str,
    code: Union[int, str],
    timestamp: Optional[Union[int, float]] = None,
    config: Optional[TotpConfig] = None,
) -> bool:
    """Check a TOTP code against a base32 secret.

    Accepts the code of the current step or of the previous step. With
    ``config.window`` set, every step within ``±window`` is accepted.

    Returns:
        True on a match, False otherwise.

    Raises:
        ValidationError: If the secret or code is malformed.
    """
    config = config or DEFAULT_CONFIG
    if timestamp is None:
        timestamp = time.time()
    expected = _normalize_code(code, config.digits)
    key = base32_decode(secret)
    if not key:
        raise ValidationError("TOTP secret is empty")
    counter = time_counter(timestamp, config.period)

    if config.window is None:
        offsets = (0, -1)
    else:
        offsets = [0]
        for step in range(1, config.window + 1):
            offsets.extend((-step, step))

    for delta in offsets:
        if counter + delta < 0:
            continue
        candidate = hotp(key, counter + delta, config.digits, config.algorithm)
        if hmac.compare_digest(
            format_code(candidate, config.digits),
            format_code(expected, config.digits),
        ):
            return True
    logger.debug("TOTP code rejected at step %d", counter)
    return False


def time_remaining(
    timestamp: Optional[Union[int, float]] = None,
    period: int = 30,
) -> int:
    """Seconds until the code for ``timestamp`` rolls over."""
    if timestamp is None:
        timestamp = time.time()
    return period - int(timestamp % period)


def provisioning_uri(
    secret: str,
    account_name: str,
    issuer: Optional[str] = None,
    config: Optional[TotpConfig] = None,
) -> str:
    """Build an ``otpauth://totp/`` URI for authenticator apps.

    Args:
        secret: Base32-encoded shared secret.
        account_name: Account label, usually the entry username.
        issuer: Optional issuer, usually the entry service.
        config: TOTP parameters to advertise.

    Returns:
        Key URI string.
    """
    config = config or DEFAULT_CONFIG
    # Validates the secret and strips its padding.
    normalized = base32_encode(base32_decode(secret)).rstrip(BASE32_PADDING)
    label = quote(account_name, safe="@")
    if issuer:
        label = f"{quote(issuer, safe='')}:{label}"
    params = {"secret": normalized}
    if issuer:
        params["issuer"] = issuer
    params["algorithm"] = config.algorithm.upper()
    params["digits"] = config.digits
    params["period"] = config.period
    return f"otpauth://totp/{label}?{urlencode(params, quote_via=quote)}"
