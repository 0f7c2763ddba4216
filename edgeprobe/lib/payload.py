"""Synthetic payload generation for throughput tests.

Sizes are validated before anything is allocated. Random payloads are
filled in chunks of at most MAX_RANDOM_CHUNK bytes per call to the
randomness source, which refuses larger requests outright.
"""

from __future__ import annotations

import os
import re
from typing import Callable, Protocol

from starlette.requests import Request

from lib.errors import InvalidSize, PayloadTooLarge

MAX_SIZE = 100 * 1024 * 1024  # 100 MiB
DEFAULT_SIZE = 1024 * 1024  # 1 MiB
MAX_RANDOM_CHUNK = 65536

PATTERN_ZERO = "zero"
PATTERN_ASTERISK = "asterisk"
PATTERN_RANDOM = "rand"
PATTERNS = (PATTERN_ZERO, PATTERN_ASTERISK, PATTERN_RANDOM)
DEFAULT_PATTERN = PATTERN_ASTERISK

_FILL_BYTE = {PATTERN_ZERO: b"\x00", PATTERN_ASTERISK: b"*"}
_INTEGER = re.compile(r"[+-]?\d+")


class RandomSource(Protocol):
    """Secure randomness port: fills a writable buffer of bounded length."""

    max_chunk: int

    def fill(self, view: memoryview) -> None:
        ...


class OsRandomSource:
    """RandomSource backed by os.urandom with a hard per-call quota."""

    def __init__(self, max_chunk: int = MAX_RANDOM_CHUNK, urandom: Callable[[int], bytes] = os.urandom):
        self.max_chunk = max_chunk
        self._urandom = urandom

    def fill(self, view: memoryview) -> None:
        if len(view) > self.max_chunk:
            raise ValueError(
                f"Random fill of {len(view)} bytes exceeds the {self.max_chunk} byte quota"
            )
        view[:] = self._urandom(len(view))


def parse_size(raw: str | None, max_size: int = MAX_SIZE) -> int:
    """Parse the `size` query value. Missing → DEFAULT_SIZE."""
    if raw is None or raw.strip() == "":
        return DEFAULT_SIZE
    raw = raw.strip()
    if not _INTEGER.fullmatch(raw):
        raise InvalidSize(f"Invalid size. Must be 1-{max_size} bytes.")
    # Compare digit counts first: int() refuses very long strings
    digits = raw.lstrip("+-").lstrip("0")
    if not raw.startswith("-") and len(digits) > len(str(max_size)):
        raise PayloadTooLarge(f"Size too large (max {max_size} bytes)")
    if len(digits) > len(str(max_size)):
        raise InvalidSize(f"Invalid size. Must be 1-{max_size} bytes.")
    size = int(raw)
    if size <= 0:
        raise InvalidSize(f"Invalid size. Must be 1-{max_size} bytes.")
    if size > max_size:
        raise PayloadTooLarge(f"Size too large (max {max_size} bytes)")
    return size


def fill_random(buffer: bytearray, source: RandomSource, chunk: int = MAX_RANDOM_CHUNK) -> None:
    """Fill `buffer` from `source`, `chunk` bytes per call."""
    if chunk <= 0:
        raise ValueError("chunk must be positive")
    view = memoryview(buffer)
    for offset in range(0, len(buffer), chunk):
        source.fill(view[offset:offset + chunk])


def generate_payload(size: int, pattern: str, source: RandomSource | None = None) -> bytes:
    """Build exactly `size` bytes of `pattern`."""
    if pattern == PATTERN_RANDOM:
        buffer = bytearray(size)
        fill_random(buffer, source or OsRandomSource())
        return bytes(buffer)
    return _FILL_BYTE[pattern] * size


def describe(size: int, pattern: str) -> dict:
    """Metadata-only view of a payload, for clients negotiating size."""
    return {
        "bytes": size,
        "kibibytes": round(size / 1024, 2),
        "mebibytes": round(size / 1048576, 2),
        "pattern": pattern,
    }


async def read_bounded_body(request: Request, limit: int = MAX_SIZE) -> tuple[bytes | None, int]:
    """Read the whole request body, keeping at most `limit` bytes.

    Past the limit the rest of the stream is still drained and discarded so
    the connection is never left half-read; the body comes back as None.
    Returns (body, total bytes received).
    """
    chunks: list[bytes] = []
    received = 0
    too_large = False
    async for chunk in request.stream():
        received += len(chunk)
        if too_large:
            continue
        if received > limit:
            too_large = True
            chunks.clear()
            continue
        chunks.append(chunk)
    return (None if too_large else b"".join(chunks)), received
