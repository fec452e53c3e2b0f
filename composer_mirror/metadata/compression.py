"""Gzip helpers for stored metadata content."""

import gzip

GZIP_MAGIC = b"\x1f\x8b"


def is_gzip(data: bytes) -> bool:
    """Check whether data starts with the gzip magic bytes."""
    return data[:2] == GZIP_MAGIC


def gzip_encode(data: bytes, level: int = 6) -> bytes:
    """Compress data.

    The header mtime is pinned to 0 so the same input always produces
    the same compressed bytes.
    """
    return gzip.compress(data, compresslevel=level, mtime=0)


def gzip_decode(data: bytes) -> bytes:
    """Decompress data if it is gzip encoded, otherwise return it as-is.

    Raises:
        OSError: If the gzip header is corrupt
        zlib.error: If the compressed data is corrupt
        EOFError: If the gzip stream is truncated
    """
    if not is_gzip(data):
        return data
    return gzip.decompress(data)
