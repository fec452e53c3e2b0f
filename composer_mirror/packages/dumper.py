"""Metadata dumper.

Builds the Composer repository files for one requesting identity:

* the root index (``packages.json``)
* the provider manifest (``p/providers$<hash>.json``)
* one metadata file per package (``p2/<vendor>/<name>.json``)

Each package file is hashed over its exact serialized bytes and the
provider manifest lists those hashes, so clients can verify every file
they download and skip the ones whose hash did not change. Packages and
versions the identity may not see are left out entirely.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..common.config import MetadataConfig
from ..common.logger import get_logger
from ..metadata.document import MetadataDocument, StructuredContent
from ..metadata.options import TTL
from .base import AclChecker, Identity, Package, PackageStore, UrlGenerator, VersionData

logger = get_logger("metadata_dumper")

# Stand-in package name used to generate the notify URL template
_PLACEHOLDER_NAME = "VND/PKG"


@dataclass(frozen=True)
class DumpResult:
    """Documents produced by one dump, each carrying its sha256 hash."""

    root: MetadataDocument
    providers: MetadataDocument
    packages: Dict[str, MetadataDocument] = field(default_factory=dict)
    provider_includes_template: str = "p/providers$%hash%.json"
    providers_url_template: str = "/p/%package%$%hash%.json"

    @property
    def available_packages(self) -> List[str]:
        return sorted(self.packages)

    def provider_includes_path(self) -> str:
        """Path of the provider manifest with its hash filled in."""
        return self.provider_includes_template.replace("%hash%", self.providers.hash() or "")

    def provider_path(self, name: str) -> str:
        """v1 URL of a package file with its hash filled in.

        Raises:
            KeyError: If the package is not part of this dump
        """
        document = self.packages[name]
        return self.providers_url_template.replace("%package%", name).replace(
            "%hash%", document.hash() or ""
        )


class MetadataDumper:
    """Synthesizes identity-filtered repository metadata."""

    def __init__(
        self,
        store: PackageStore,
        checker: AclChecker,
        urls: UrlGenerator,
        config: Optional[MetadataConfig] = None,
    ):
        self.store = store
        self.checker = checker
        self.urls = urls
        self.config = config or MetadataConfig()

    def dump(self, identity: Optional[Identity] = None) -> DumpResult:
        """Dump the root index, provider manifest and package files.

        Args:
            identity: Requesting identity, or None for an unfiltered dump

        Returns:
            DumpResult with hashed documents
        """
        packages = self.store.list_visible_packages(identity)
        version_data = self._load_version_data(packages)

        package_documents: Dict[str, MetadataDocument] = {}
        for package in packages:
            document = self._package_document(identity, package, version_data)
            if document is not None:
                package_documents[package.name] = document

        providers = {
            name: {"sha256": document.hash()} for name, document in sorted(package_documents.items())
        }
        timestamp = max((d.timestamp for d in package_documents.values()), default=None)
        providers_document = self._build_document({"providers": providers}, timestamp)
        root_document = self._build_document(
            self._root_index(sorted(package_documents), providers_document.hash()),
            timestamp,
        )

        logger.debug(
            "Dumped %d of %d visible packages for %s",
            len(package_documents),
            len(packages),
            identity.username if identity else "anonymous",
        )

        return DumpResult(
            root=root_document,
            providers=providers_document,
            packages=package_documents,
            provider_includes_template=self.config.provider_includes_path,
            providers_url_template=self.config.providers_url,
        )

    def dump_package(
        self,
        identity: Optional[Identity],
        package: Union[Package, str],
        version_data: Optional[VersionData] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Dump the visible versions of one package.

        Args:
            identity: Requesting identity, or None to skip ACL checks
            package: Package value or package name
            version_data: Bulk-loaded version fields; queried when None

        Returns:
            Mapping of version string to payload, empty when the package
            does not exist or the identity may not see it
        """
        if isinstance(package, str):
            package = self.store.find_package(package)

        if package is None:
            return {}

        if identity is not None and not self.checker.is_package_granted(identity, package):
            return {}

        versions = [
            version
            for version in self.store.list_visible_versions(identity, package)
            if identity is None or self.checker.is_version_granted(identity, version)
        ]
        if not versions:
            return {}

        if version_data is None:
            version_data = self.store.batch_load_version_fields([v.id for v in versions])

        return {v.version: v.to_payload(package.name, version_data) for v in versions}

    def dump_package_document(
        self, identity: Optional[Identity], name: str
    ) -> Optional[MetadataDocument]:
        """Build the v2 metadata file of one package.

        Returns:
            Hashed document byte-identical to the one dump() produces, or
            None when the package is missing or hidden
        """
        package = self.store.find_package(name)
        if package is None:
            return None
        return self._package_document(identity, package, None)

    def _package_document(
        self,
        identity: Optional[Identity],
        package: Package,
        version_data: Optional[VersionData],
    ) -> Optional[MetadataDocument]:
        package_data = self.dump_package(identity, package, version_data)
        if not package_data:
            return None

        visible = {payload["uid"] for payload in package_data.values()}
        modified = [v.modified_at for v in package.versions if v.id in visible and v.modified_at]
        timestamp = max(modified) if modified else None

        return self._build_document({"packages": {package.name: package_data}}, timestamp)

    def _build_document(self, payload: Dict[str, Any], timestamp: Any) -> MetadataDocument:
        document = MetadataDocument(b"", timestamp if timestamp is not None else time.time())
        document = document.with_content(StructuredContent(payload)).compute_hash("sha256")
        return document.set_option(TTL, self.config.cache_ttl)

    def _root_index(self, names: List[str], providers_hash: Optional[str]) -> Dict[str, Any]:
        notify = self.urls.generate("track_download", {"name": _PLACEHOLDER_NAME})

        return {
            "packages": {},
            "notify": notify.replace(_PLACEHOLDER_NAME, "%package%"),
            "notify-batch": self.urls.generate("track_download_batch"),
            "providers-url": self.config.providers_url,
            "metadata-url": self.config.metadata_url,
            "available-packages": names,
            "provider-includes": {
                self.config.provider_includes_path: {"sha256": providers_hash},
            },
        }

    def _load_version_data(self, packages: List[Package]) -> VersionData:
        if not packages:
            return {}
        version_ids = self.store.list_version_ids([p.id for p in packages])
        return self.store.batch_load_version_fields(version_ids)
