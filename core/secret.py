"""
Base32 secret decoding with a small decoded-key cache.

Secrets arrive as user-typed Base32 text (RFC 4648): any letter case,
embedded spaces, padding optional.  :class:`SecretCodec` normalises that
text and turns it into raw HMAC key bytes.  Decoding the same secret once
per second for every account on screen is wasteful, so each codec keeps a
memo of the last few decoded keys.
"""

import base64
import binascii
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CACHE_CAPACITY = 1
_BLOCK = 8


class DecodeError(ValueError):
    """Raised when a secret is not valid Base32, padded or unpadded."""

    def __init__(self, message: str, reason: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True)
class CacheInfo:
    hits: int
    misses: int
    size: int
    capacity: int


def normalize(secret: str) -> str:
    """
    Uppercase *secret*, drop spaces and pad it to a whole Base32 block.

    Example::

        >>> normalize("jbsw y3dp ehpk 3pxp")
        'JBSWY3DPEHPK3PXP'
        >>> normalize("JBSWY3DPEHPK3PX")
        'JBSWY3DPEHPK3PX='
    """
    secret = secret.upper().replace(" ", "")
    remainder = len(secret) % _BLOCK
    if remainder:
        secret += "=" * (_BLOCK - remainder)
    return secret


class KeyCache:
    """
    Bounded memo of ``normalised text -> key bytes``.

    The entries live in an immutable tuple.  Readers grab the current tuple
    without locking; writers build a replacement under ``_write_lock`` and
    publish it with one assignment, so a reader always sees a whole entry
    set, either the old one or the new one.

    Hit and miss counters sit behind their own small lock, which lookups
    only touch after the entry scan.

    ``capacity=0`` turns the cache off.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        if capacity < 0:
            raise ValueError("Cache capacity must be non-negative.")
        self._capacity = capacity
        self._entries: Tuple[Tuple[str, bytes], ...] = ()
        self._write_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, text: str) -> Optional[bytes]:
        for cached_text, key in self._entries:
            if cached_text == text:
                with self._stats_lock:
                    self._hits += 1
                return key
        with self._stats_lock:
            self._misses += 1
        return None

    def put(self, text: str, key: bytes) -> None:
        if self._capacity == 0:
            return
        with self._write_lock:
            kept = tuple(e for e in self._entries if e[0] != text)
            # Newest first; the oldest entry falls off the end.
            self._entries = ((text, key),) + kept[: self._capacity - 1]

    def clear(self) -> None:
        with self._write_lock:
            self._entries = ()
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    def info(self) -> CacheInfo:
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        return CacheInfo(
            hits=hits,
            misses=misses,
            size=len(self._entries),
            capacity=self._capacity,
        )


class SecretCodec:
    """Decode Base32 secrets into key bytes, memoising recent results."""

    def __init__(self, cache: Optional[KeyCache] = None) -> None:
        """
        Args:
            cache: Key cache to use.  Each codec gets its own single-entry
                   cache by default, so independent codecs never share keys.
        """
        self._cache = cache if cache is not None else KeyCache()

    @property
    def cache(self) -> KeyCache:
        return self._cache

    def decode(self, secret: str) -> bytes:
        """
        Return the raw key bytes for *secret*.

        Args:
            secret: Base32 text; case, spaces and missing padding are tolerated.

        Returns:
            Decoded key bytes (immutable, safe to hand out from the cache).

        Raises:
            DecodeError: If neither the padded nor the unpadded decoding works.
        """
        text = normalize(secret)

        key = self._cache.get(text)
        if key is not None:
            return key

        try:
            key = base64.b32decode(text)
        except (binascii.Error, ValueError):
            try:
                key = _decode_unpadded(text)
            except (binascii.Error, ValueError) as exc:
                raise DecodeError(f"Invalid base32 secret: {exc}", reason=exc) from exc
            logger.debug("Secret needed unpadded decoding (%d chars).", len(text))

        self._cache.put(text, key)
        logger.debug("Decoded secret into %d key bytes.", len(key))
        return key

    def cache_info(self) -> CacheInfo:
        return self._cache.info()

    def clear(self) -> None:
        self._cache.clear()


def _decode_unpadded(text: str) -> bytes:
    # Strip every '=' (stray or surplus) and re-derive the padding.
    bare = text.replace("=", "")
    remainder = len(bare) % _BLOCK
    if remainder:
        bare += "=" * (_BLOCK - remainder)
    return base64.b32decode(bare)
