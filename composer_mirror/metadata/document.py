"""Hash-addressed metadata documents.

A MetadataDocument wraps the serialized bytes of one Composer metadata
file (root index, provider manifest or per-package file) together with
its creation time, content digest and transport options.

Documents are values: every operation that changes something returns a
new document and leaves the receiver untouched, so a document can be
shared between threads and cached by the caller without copying.
"""

import hashlib
import json
import time
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union

from .compression import gzip_decode, gzip_encode, is_gzip
from .options import MetadataOptions


def encode_json(value: Any, pretty: bool = False) -> bytes:
    """Serialize a value to canonical JSON bytes.

    Keys are sorted and non-ASCII characters escaped so the same value
    always produces the same bytes. Forward slashes are never escaped.
    """
    if pretty:
        text = json.dumps(value, sort_keys=True, indent=4, ensure_ascii=True)
    else:
        text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return text.encode("utf-8")


@dataclass(frozen=True)
class RawContent:
    """Literal payload stored as-is."""

    data: Union[bytes, str]


@dataclass(frozen=True)
class StructuredContent:
    """Value to be serialized with encode_json()."""

    value: Any


@dataclass(frozen=True)
class TransformContent:
    """Function applied to the currently decoded content."""

    func: Callable[[Any], Any]


Content = Union[RawContent, StructuredContent, TransformContent]


def as_content(content: Any) -> Content:
    """Wrap a plain value in the matching content variant."""
    if isinstance(content, (RawContent, StructuredContent, TransformContent)):
        return content
    if isinstance(content, (bytes, str)):
        return RawContent(content)
    if callable(content):
        return TransformContent(content)
    return StructuredContent(content)


def _to_bytes(data: Union[bytes, str]) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _to_unix(timestamp: Union[int, float, datetime, None]) -> int:
    if timestamp is None:
        return int(time.time())
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return int(timestamp.timestamp())
    return int(timestamp)


class MetadataDocument:
    """Immutable container for one serialized metadata file."""

    __slots__ = ("_content", "_timestamp", "_hash", "_options", "_not_modified")

    def __init__(
        self,
        content: Union[bytes, str],
        timestamp: Union[int, float, datetime, None] = None,
        hash: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ):
        self._content = _to_bytes(content)
        self._timestamp = _to_unix(timestamp)
        self._hash = hash
        self._options = MetadataOptions(options)
        self._not_modified = False

    def __repr__(self) -> str:
        state = "not-modified" if self._not_modified else f"{len(self._content)} bytes"
        return f"<MetadataDocument {state} hash={self._hash} at={self._timestamp}>"

    def _replace(self, **changes: Any) -> "MetadataDocument":
        clone = object.__new__(type(self))
        for slot in self.__slots__:
            object.__setattr__(clone, slot, changes.get(slot, getattr(self, slot)))
        return clone

    @property
    def timestamp(self) -> int:
        """Creation time in unix seconds."""
        return self._timestamp

    def last_modified(self) -> datetime:
        return datetime.fromtimestamp(self._timestamp, tz=timezone.utc)

    def is_not_modified(self) -> bool:
        return self._not_modified

    def is_compressed(self) -> bool:
        return is_gzip(self._content)

    def raw_content(self) -> bytes:
        """Stored bytes, compressed or not."""
        return self._content

    def get_content(self) -> bytes:
        """Return the served bytes, decompressing on demand."""
        return gzip_decode(self._content)

    def decode_json(self) -> Union[dict, list]:
        """Parse the content as JSON.

        Returns:
            The decoded object or array, or an empty dict when the
            content is corrupt, not JSON, nested too deeply, or a JSON
            scalar.
        """
        try:
            data = json.loads(self.get_content().decode("utf-8"))
        except (ValueError, RecursionError, OSError, EOFError, zlib.error):
            return {}
        return data if isinstance(data, (dict, list)) else {}

    def hash(self) -> Optional[str]:
        return self._hash

    def get_options(self) -> MetadataOptions:
        return self._options

    def set_options(self, options: Mapping[str, Any]) -> "MetadataDocument":
        """Return a copy with ``options`` merged over the current ones."""
        return self._replace(_options=self._options.merge(options))

    def set_option(self, name: str, value: Any) -> "MetadataDocument":
        return self._replace(_options=self._options.with_option(name, value))

    def with_content(self, content: Any, pretty: bool = False) -> "MetadataDocument":
        """Return a copy holding new content and no hash.

        Args:
            content: RawContent, StructuredContent or TransformContent, or a
                plain bytes/str, dict/list or callable wrapped by as_content()
            pretty: Indent serialized JSON

        Returns:
            New MetadataDocument with the same timestamp and options
        """
        content = as_content(content)

        if isinstance(content, TransformContent):
            result = content.func(self.decode_json())
            content = RawContent(result) if isinstance(result, (bytes, str)) else StructuredContent(result)

        if isinstance(content, StructuredContent):
            data = encode_json(content.value, pretty=pretty)
        else:
            data = _to_bytes(content.data)

        return self._replace(_content=data, _hash=None, _not_modified=False)

    def with_hash(self, digest: Optional[str]) -> "MetadataDocument":
        return self._replace(_hash=digest)

    def compute_hash(self, algorithm: str = "sha256") -> "MetadataDocument":
        """Return a copy whose hash is the digest of get_content()."""
        return self._replace(_hash=hashlib.new(algorithm, self.get_content()).hexdigest())

    def gzipped(self, level: int = 6) -> "MetadataDocument":
        """Return a copy storing compressed bytes.

        The served content is unchanged, so the hash is kept.
        """
        if self.is_compressed() or self._not_modified:
            return self
        return self._replace(_content=gzip_encode(self._content, level))

    @classmethod
    def create_not_modified(cls, timestamp: Union[int, float, datetime]) -> "MetadataDocument":
        """Sentinel telling the caller to reuse its cached copy."""
        document = cls(b"", timestamp)
        document._not_modified = True
        return document
