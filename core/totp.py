"""
TOTP (Time-based One-Time Password) implementation following RFC 6238.

Produces codes identical to Google Authenticator for the default profile
(SHA1, 30-second period, 6 digits).
"""

import hmac
import struct
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

from core.secret import SecretCodec

DEFAULT_PERIOD = 30
DEFAULT_DIGITS = 6

Instant = Union[int, float, datetime]


class Algorithm(str, Enum):
    """Supported HMAC algorithms."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @classmethod
    def parse(cls, value: str) -> "Algorithm":
        """Case-insensitive lookup, e.g. ``"sha256"`` -> ``Algorithm.SHA256``."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(
                f"Unsupported algorithm '{value}'. Supported: SHA1, SHA256, SHA512."
            )


_ALG_MAP: dict[str, str] = {
    Algorithm.SHA1: "sha1",
    Algorithm.SHA256: "sha256",
    Algorithm.SHA512: "sha512",
}


@dataclass(frozen=True)
class ValidityWindow:
    """Half-open ``[start, end)`` interval, in Unix seconds, of one code."""

    start: int
    end: int

    @property
    def total(self) -> int:
        return self.end - self.start

    def remaining(self, now: Optional[float] = None) -> int:
        """Whole seconds left before the window closes (never negative)."""
        t = now if now is not None else time.time()
        return max(0, int(self.end - t))

    def __contains__(self, timestamp: float) -> bool:
        return self.start <= timestamp < self.end


@dataclass(frozen=True)
class CurrentCode:
    code: str
    window: ValidityWindow


_MAX_COUNTER = 2**64 - 1


def _unix_seconds(instant: Instant) -> int:
    if isinstance(instant, datetime):
        return int(instant.timestamp())
    try:
        return int(instant)
    except OverflowError as exc:
        raise ValueError(f"Instant out of range: {instant!r}") from exc


def _window_at(timestamp: float, period: int) -> ValidityWindow:
    start = (int(timestamp) // period) * period
    return ValidityWindow(start, start + period)


def _truncate(digest: bytes, digits: int) -> str:
    """Dynamic truncation (RFC 4226 §5.3) down to a ``digits`` string."""
    offset = digest[-1] & 0x0F
    code = (
        (digest[offset] & 0x7F) << 24
        | (digest[offset + 1] & 0xFF) << 16
        | (digest[offset + 2] & 0xFF) << 8
        | (digest[offset + 3] & 0xFF)
    )
    otp = code % (10**digits)
    return str(otp).zfill(digits)


class TOTPEngine:
    """
    Generate and validate TOTP codes for Base32 secrets.

    Each engine owns its :class:`~core.secret.SecretCodec` (and thus its key
    cache) and a clock, so engines built side by side never interfere.
    """

    def __init__(
        self,
        codec: Optional[SecretCodec] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            codec: Secret decoder; a fresh one with a single-entry cache if None.
            clock: Returns the current Unix time; override in tests.
        """
        self.codec = codec if codec is not None else SecretCodec()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def generate_code_at(
        self,
        secret: str,
        period: int,
        instant: Instant,
        algorithm: Algorithm = Algorithm.SHA1,
        digits: int = DEFAULT_DIGITS,
    ) -> str:
        """
        Generate the code valid at *instant*.

        Args:
            secret:    Base32 secret text.
            period:    Time step in seconds (positive).
            instant:   Unix timestamp or ``datetime``.
            algorithm: HMAC algorithm.
            digits:    Code length (default 6).

        Returns:
            OTP string, zero-padded to ``digits`` characters.

        Raises:
            core.secret.DecodeError: If *secret* is not valid Base32.
            ValueError: If *period* is not a positive integer, or *instant*
                falls outside the 64-bit counter range.
        """
        if not isinstance(period, int) or period <= 0:
            raise ValueError("Period must be a positive whole number of seconds.")
        key = self.codec.decode(secret)

        counter = _unix_seconds(instant) // period
        if counter < 0:
            raise ValueError("Instant precedes the Unix epoch.")
        if counter > _MAX_COUNTER:
            raise ValueError("Instant is beyond the 64-bit counter range.")
        msg = struct.pack(">Q", counter)
        digest = hmac.new(key, msg, _ALG_MAP[Algorithm(algorithm)]).digest()
        return _truncate(digest, digits)

    def generate_current_code(
        self,
        secret: str,
        algorithm: Algorithm = Algorithm.SHA1,
        period: int = DEFAULT_PERIOD,
        digits: int = DEFAULT_DIGITS,
    ) -> CurrentCode:
        """
        Generate the code for right now together with its validity window.

        The window is aligned to multiples of *period* since the epoch, so
        ``window.remaining()`` drives a countdown.
        """
        now = self.now()
        code = self.generate_code_at(secret, period, now, algorithm, digits)
        return CurrentCode(code=code, window=_window_at(now, period))

    def validate_code(
        self,
        secret: str,
        candidate: str,
        period: int = DEFAULT_PERIOD,
        window: int = 1,
        algorithm: Algorithm = Algorithm.SHA1,
        digits: int = DEFAULT_DIGITS,
        timestamp: Optional[float] = None,
    ) -> bool:
        """
        Validate *candidate* within ±``window`` time steps.

        A secret that cannot be decoded simply never matches; this method
        answers yes or no and never raises for bad input.
        """
        t = timestamp if timestamp is not None else self.now()
        candidate = candidate.strip()
        window = max(window, 0)

        for step in range(-window, window + 1):
            try:
                expected = self.generate_code_at(
                    secret, period, t + step * period, algorithm, digits
                )
            except ValueError:
                continue
            if hmac.compare_digest(candidate.encode(), expected.encode()):
                return True
        return False


# ── Module-level helpers ──────────────────────────────────────────────────────

_default_engine = TOTPEngine()


def generate_code_at(
    secret: str,
    period: int,
    instant: Instant,
    algorithm: Algorithm = Algorithm.SHA1,
    digits: int = DEFAULT_DIGITS,
) -> str:
    return _default_engine.generate_code_at(secret, period, instant, algorithm, digits)


def generate_current_code(
    secret: str,
    algorithm: Algorithm = Algorithm.SHA1,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
) -> CurrentCode:
    return _default_engine.generate_current_code(secret, algorithm, period, digits)


def validate_code(
    secret: str,
    candidate: str,
    period: int = DEFAULT_PERIOD,
    window: int = 1,
    algorithm: Algorithm = Algorithm.SHA1,
    digits: int = DEFAULT_DIGITS,
    timestamp: Optional[float] = None,
) -> bool:
    return _default_engine.validate_code(
        secret, candidate, period, window, algorithm, digits, timestamp
    )


def remaining_seconds(period: int = DEFAULT_PERIOD, timestamp: Optional[float] = None) -> int:
    """Whole seconds left in the window holding *timestamp* (default: now)."""
    t = timestamp if timestamp is not None else _default_engine.now()
    return _window_at(t, period).remaining(t)
