"""Transport hints attached to metadata documents."""

from typing import Any, Dict, Iterator, Mapping, Optional

TTL = "ttl"
COMPRESS = "compress"


class MetadataOptions(Mapping):
    """Immutable key/value bag of transport hints.

    The metadata core only carries these values around; the HTTP layer
    or the static writer decide what they mean.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MetadataOptions):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"MetadataOptions({self._values!r})"

    def merge(self, values: Mapping[str, Any]) -> "MetadataOptions":
        """Return new options with ``values`` layered on top."""
        merged = dict(self._values)
        merged.update(values)
        return MetadataOptions(merged)

    def with_option(self, key: str, value: Any) -> "MetadataOptions":
        return self.merge({key: value})

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    @property
    def ttl(self) -> Optional[int]:
        """Cache lifetime in seconds, if set."""
        value = self._values.get(TTL)
        return int(value) if value is not None else None

    @property
    def compress(self) -> bool:
        return bool(self._values.get(COMPRESS, False))
