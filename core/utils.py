"""
Utility helpers for multitotp.
"""

import re
import unicodedata

from core.secret import DecodeError

_BASE32_CHARS = re.compile(r"[A-Z2-7]+=*")


# ── Base32 ────────────────────────────────────────────────────────────────────

def clean_secret(secret: str) -> str:
    """
    Canonical storage form of a secret: uppercase, no spaces, no padding.

    Raises:
        DecodeError: If the text contains characters outside the Base32 alphabet.
    """
    secret = secret.strip().upper().replace(" ", "")
    if not secret or not _BASE32_CHARS.fullmatch(secret):
        raise DecodeError("Secret contains invalid base32 characters.")
    return secret.rstrip("=")


# ── Labels ────────────────────────────────────────────────────────────────────

def sanitise_label(text: str) -> str:
    """Remove control characters and limit label length."""
    text = unicodedata.normalize("NFC", text)
    text = "".join(ch for ch in text if unicodedata.category(ch)[0] != "C")
    return text[:128].strip()


def split_labels(raw: str) -> list[str]:
    """Split a comma-separated ``--account`` value, dropping blanks."""
    return [part.strip() for part in raw.split(",") if part.strip()]


# ── Display ───────────────────────────────────────────────────────────────────

def format_otp(code: str, group: int = 3) -> str:
    """
    Format an OTP code with spaces for readability.

    Example::

        >>> format_otp("123456")
        "123 456"
    """
    return " ".join(code[i : i + group] for i in range(0, len(code), group))


# ── Validation ────────────────────────────────────────────────────────────────

def validate_digits(digits: int) -> None:
    if digits not in (6, 7, 8):
        raise ValueError("Digits must be 6, 7 or 8.")


def validate_period(period: int) -> None:
    if period < 1 or period > 300:
        raise ValueError("Period must be between 1 and 300 seconds.")
