"""Package store abstraction and metadata dumper.

The dumper depends only on the PackageStore, AclChecker and UrlGenerator
interfaces, so it works the same with the in-memory catalog store and
the SQL store of the server.
"""

from .base import (
    AclChecker,
    AclGrant,
    Identity,
    Package,
    PackageStore,
    UrlGenerator,
    Version,
)
from .acl import PackagesAclChecker
from .dumper import DumpResult, MetadataDumper
from .memory import InMemoryPackageStore, load_catalog, read_catalog
from .urls import RouteUrlGenerator

__all__ = [
    "AclChecker",
    "AclGrant",
    "DumpResult",
    "Identity",
    "InMemoryPackageStore",
    "MetadataDumper",
    "Package",
    "PackageStore",
    "PackagesAclChecker",
    "RouteUrlGenerator",
    "UrlGenerator",
    "Version",
    "load_catalog",
    "read_catalog",
]
