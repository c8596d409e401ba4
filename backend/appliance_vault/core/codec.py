"""
Byte-buffer codec for stored assets.

Assets are gzip-compressed before being stored. Decompression is tolerant:
data that does not start with the gzip magic marker is returned unchanged
(records written before compression existed), and a corrupt gzip payload
degrades to the original bytes instead of raising.
"""

import gzip
import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Optional

from appliance_vault.core.errors import CodecError

logger = logging.getLogger(__name__)

MAGIC = b"\x1f\x8b"
COMPRESSION_LEVEL = 6


@dataclass(frozen=True)
class DecompressResult:
    """Outcome of a decompression attempt."""

    data: bytes
    degraded: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, data: bytes) -> "DecompressResult":
        return cls(data=data)

    @classmethod
    def degrade(cls, original: bytes, reason: str) -> "DecompressResult":
        return cls(data=original, degraded=True, reason=reason)


def is_compressed(data: bytes) -> bool:
    """Check for the gzip magic marker."""
    return data[:2] == MAGIC


def compress(data: bytes) -> bytes:
    """Compress a buffer. Output is deterministic (mtime pinned to 0)."""
    try:
        return gzip.compress(bytes(data), compresslevel=COMPRESSION_LEVEL, mtime=0)
    except (MemoryError, zlib.error) as e:
        logger.error(f"Error compressing buffer: {e}")
        raise CodecError("Failed to compress file") from e


def decompress_result(data: bytes) -> DecompressResult:
    """Decompress a buffer, reporting whether the result is degraded."""
    if not is_compressed(data):
        return DecompressResult.ok(data)
    try:
        return DecompressResult.ok(gzip.decompress(data))
    except (OSError, EOFError, ValueError, struct.error, zlib.error) as e:
        # gzip.BadGzipFile is an OSError subclass
        return DecompressResult.degrade(data, str(e) or e.__class__.__name__)


def decompress(data: bytes) -> bytes:
    """Decompress a buffer; never raises, corrupt payloads come back as-is."""
    result = decompress_result(data)
    if result.degraded:
        logger.warning(f"Decompression degraded, returning stored bytes: {result.reason}")
    return result.data
