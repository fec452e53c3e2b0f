"""Base classes and protocols for the package store and its collaborators.

Defines the value types the metadata dumper works with and the narrow
interfaces it depends on: a package/version store, an ACL checker and
a URL generator. Any storage backend can be plugged in by implementing
PackageStore.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Set, Tuple

# Version fields resolved in bulk by the store, keyed by version id
VersionData = Mapping[int, Mapping[str, Any]]

LINK_TYPES = ("require", "require-dev", "conflict", "provide", "replace", "suggest")


@dataclass(frozen=True)
class Version:
    """A released version of a package."""

    id: int
    package_id: int
    version: str
    version_normalized: str = ""
    released_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    attributes: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def to_payload(self, package_name: str, version_data: VersionData) -> Dict[str, Any]:
        """Build the Composer payload for this version.

        Args:
            package_name: Name of the owning package
            version_data: Bulk-loaded fields keyed by version id

        Returns:
            Payload dictionary including the ``uid`` field
        """
        payload: Dict[str, Any] = dict(self.attributes)
        payload.update(
            {
                "name": package_name,
                "version": self.version,
                "version_normalized": self.version_normalized or self.version,
            }
        )
        if self.released_at is not None:
            payload["time"] = self.released_at.replace(microsecond=0).isoformat()

        payload.update(version_data.get(self.id, {}))
        payload["uid"] = self.id
        return payload

    @property
    def modified_at(self) -> Optional[datetime]:
        return self.updated_at or self.released_at


@dataclass(frozen=True)
class Package:
    """A package with its ordered versions."""

    id: int
    name: str
    versions: Tuple[Version, ...] = ()


@dataclass(frozen=True)
class AclGrant:
    """Access to one package conferred by a group membership.

    ``version_constraint`` holds glob patterns separated by ``||`` or
    ``,``. None grants every version.
    """

    package_id: int
    version_constraint: Optional[str] = None


@dataclass(frozen=True)
class Identity:
    """A requesting user with its group grants already resolved."""

    id: int
    username: str
    grants: Tuple[AclGrant, ...] = ()
    is_admin: bool = False
    # Versions released after this point are hidden from the user
    expired_updates_at: Optional[datetime] = None

    def granted_package_ids(self) -> Set[int]:
        return {grant.package_id for grant in self.grants}

    def grants_for(self, package_id: int) -> List[AclGrant]:
        return [grant for grant in self.grants if grant.package_id == package_id]

    def can_see_release(self, version: Version) -> bool:
        if self.expired_updates_at is None or version.released_at is None:
            return True
        return version.released_at <= self.expired_updates_at


class PackageStore(ABC):
    """Read access to packages and versions.

    Implementations must batch: list_version_ids() and
    batch_load_version_fields() each cost one round-trip regardless of
    how many ids they receive.
    """

    @abstractmethod
    def list_visible_packages(self, identity: Optional[Identity]) -> List[Package]:
        """List packages visible to an identity.

        Args:
            identity: Requesting identity, or None for every package

        Returns:
            Packages granted through the identity's groups (all for admins)
        """
        pass

    @abstractmethod
    def find_package(self, name: str) -> Optional[Package]:
        """Look up a package by name.

        Returns:
            Package or None if not found
        """
        pass

    @abstractmethod
    def list_version_ids(self, package_ids: Iterable[int]) -> List[int]:
        """List the ids of every version of the given packages."""
        pass

    @abstractmethod
    def batch_load_version_fields(self, version_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        """Load link fields (require, conflict, ...) for many versions.

        Returns:
            Mapping of version id to its fields; ids without fields may
            be missing
        """
        pass

    def list_visible_versions(self, identity: Optional[Identity], package: Package) -> List[Version]:
        """List versions of a package the store lets an identity see.

        Versions released after the identity's update window closed are
        hidden. Group ACL rules are not applied here.
        """
        if identity is None:
            return list(package.versions)
        return [v for v in package.versions if identity.can_see_release(v)]


class AclChecker(ABC):
    """Package-level and version-level access checks."""

    @abstractmethod
    def is_package_granted(self, identity: Identity, package: Package) -> bool:
        pass

    @abstractmethod
    def is_version_granted(self, identity: Identity, version: Version) -> bool:
        pass


class UrlGenerator(ABC):
    """Resolves named routes to URLs."""

    @abstractmethod
    def generate(self, route: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Generate the URL of a named route.

        Raises:
            KeyError: If the route is unknown
        """
        pass


class PackageStoreProtocol(Protocol):
    """Protocol for type checking package stores."""

    def list_visible_packages(self, identity: Optional[Identity]) -> List[Package]: ...

    def find_package(self, name: str) -> Optional[Package]: ...

    def list_visible_versions(self, identity: Optional[Identity], package: Package) -> List[Version]: ...

    def list_version_ids(self, package_ids: Iterable[int]) -> List[int]: ...

    def batch_load_version_fields(self, version_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]: ...
