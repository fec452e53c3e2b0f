"""In-memory package store.

Holds packages and their link fields in dictionaries. Used for static
dumps built from a YAML catalog and as a drop-in store in tests.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from ..common.logger import get_logger
from .base import LINK_TYPES, Identity, Package, PackageStore, Version

logger = get_logger("memory_store")


class InMemoryPackageStore(PackageStore):
    """PackageStore backed by plain Python values."""

    def __init__(
        self,
        packages: Iterable[Package] = (),
        version_fields: Optional[Mapping[int, Mapping[str, Any]]] = None,
    ):
        self._packages: Dict[str, Package] = {}
        for package in packages:
            if package.name in self._packages:
                raise ValueError(f"Duplicate package name: {package.name}")
            self._packages[package.name] = package
        self._version_fields: Dict[int, Dict[str, Any]] = {
            version_id: dict(fields) for version_id, fields in (version_fields or {}).items()
        }

    def __len__(self) -> int:
        return len(self._packages)

    def list_visible_packages(self, identity: Optional[Identity]) -> List[Package]:
        packages = sorted(self._packages.values(), key=lambda p: p.name)
        if identity is None or identity.is_admin:
            return packages
        granted = identity.granted_package_ids()
        return [p for p in packages if p.id in granted]

    def find_package(self, name: str) -> Optional[Package]:
        return self._packages.get(name)

    def list_version_ids(self, package_ids: Iterable[int]) -> List[int]:
        wanted = set(package_ids)
        return [
            version.id
            for package in self._packages.values()
            if package.id in wanted
            for version in package.versions
        ]

    def batch_load_version_fields(self, version_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        return {
            version_id: dict(self._version_fields[version_id])
            for version_id in version_ids
            if version_id in self._version_fields
        }


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_catalog(catalog: Mapping[str, Any]) -> InMemoryPackageStore:
    """Build a store from a catalog mapping.

    Expected layout::

        packages:
          acme/foo:
            versions:
              "1.0.0":
                released_at: 2024-01-01T00:00:00
                require: {php: ">=8.1"}
                dist: {type: zip, url: "https://..."}

    Link fields (require, conflict, ...) become bulk version fields;
    everything else is kept as version attributes.

    Raises:
        TypeError: If the catalog structure is not a mapping, or a version
            key is not a string (unquoted YAML numbers such as 1.10)
    """
    packages_dict = catalog.get("packages") or {}
    if not isinstance(packages_dict, Mapping):
        raise TypeError(f"'packages' must be a mapping, got {type(packages_dict).__name__}")

    packages: List[Package] = []
    version_fields: Dict[int, Dict[str, Any]] = {}
    next_version_id = 1

    for package_id, name in enumerate(sorted(packages_dict), start=1):
        versions_dict = (packages_dict[name] or {}).get("versions") or {}
        versions: List[Version] = []
        for version_string, data in versions_dict.items():
            if not isinstance(version_string, str):
                raise TypeError(
                    f"Version of {name} must be a string, got {type(version_string).__name__} "
                    f"{version_string!r}; quote it in the catalog"
                )
            data = dict(data or {})
            links = {key: data.pop(key) for key in LINK_TYPES if key in data}
            released_at = _parse_datetime(data.pop("released_at", None))
            updated_at = _parse_datetime(data.pop("updated_at", None))
            versions.append(
                Version(
                    id=next_version_id,
                    package_id=package_id,
                    version=version_string,
                    version_normalized=str(data.pop("version_normalized", version_string)),
                    released_at=released_at,
                    updated_at=updated_at,
                    attributes=data,
                )
            )
            if links:
                version_fields[next_version_id] = links
            next_version_id += 1
        packages.append(Package(id=package_id, name=name, versions=tuple(versions)))

    logger.debug(f"Parsed catalog with {len(packages)} packages")
    return InMemoryPackageStore(packages, version_fields)


def read_catalog(catalog_path: str) -> Dict[str, Any]:
    """Read a YAML catalog file into a mapping.

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        yaml.YAMLError: If the catalog is invalid YAML
        TypeError: If the catalog root is not a mapping
    """
    path = Path(catalog_path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {catalog_path}")

    with path.open("r") as f:
        catalog = yaml.safe_load(f) or {}

    if not isinstance(catalog, dict):
        raise TypeError(f"Catalog root must be a mapping, got {type(catalog).__name__}")

    return catalog


def load_catalog(catalog_path: str) -> InMemoryPackageStore:
    """Load a YAML catalog file into a store.

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        yaml.YAMLError: If the catalog is invalid YAML
        TypeError: If the catalog is malformed
    """
    return parse_catalog(read_catalog(catalog_path))
