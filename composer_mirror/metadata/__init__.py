"""Metadata document model.

Hash-addressed, immutable containers for the JSON files served to
Composer clients, plus the options bag and gzip helpers they use.
"""

from .document import (
    MetadataDocument,
    RawContent,
    StructuredContent,
    TransformContent,
    encode_json,
)
from .options import MetadataOptions

__all__ = [
    "MetadataDocument",
    "MetadataOptions",
    "RawContent",
    "StructuredContent",
    "TransformContent",
    "encode_json",
]
