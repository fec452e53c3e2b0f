"""Group based access control for packages and versions.

A user sees a package when one of its groups grants that package, and
sees a version of it when one of those grants has no version constraint
or a constraint pattern matching the version string.
"""

import re
from fnmatch import fnmatchcase
from functools import lru_cache
from typing import List, Optional

from ..common.logger import get_logger
from .base import AclChecker, AclGrant, Identity, Package, Version

logger = get_logger("acl")

_CONSTRAINT_SEPARATOR = re.compile(r"\s*(?:\|\||,)\s*")
# Composer range syntax; such patterns never match a version as a glob
_RANGE_SYNTAX = re.compile(r"[\^~<>=!\s]")


def parse_constraint(constraint: Optional[str]) -> List[str]:
    """Split a version constraint into glob patterns.

    Args:
        constraint: Patterns separated by ``||`` or ``,`` (e.g. ``1.* || 2.0.*``)

    Returns:
        List of normalized patterns, empty when there is no constraint
    """
    if not constraint:
        return []
    return [_normalize(p) for p in _CONSTRAINT_SEPARATOR.split(constraint.strip()) if p]


def range_patterns(constraint: Optional[str]) -> List[str]:
    """Return the patterns of a constraint written in Composer range syntax."""
    return [p for p in parse_constraint(constraint) if _RANGE_SYNTAX.search(p)]


@lru_cache(maxsize=256)
def _warn_range_constraint(constraint: str) -> None:
    logger.warning(
        f"Version constraint '{constraint}' uses range syntax and matches no version; "
        f"write it as a glob such as 1.*"
    )


def _normalize(version: str) -> str:
    version = version.strip().lower()
    if version.startswith("v") and version[1:2].isdigit():
        return version[1:]
    return version


def version_matches(constraint: Optional[str], version: str) -> bool:
    """Check a version string against a constraint.

    An empty constraint matches everything.
    """
    patterns = parse_constraint(constraint)
    if not patterns:
        return True
    if range_patterns(constraint):
        _warn_range_constraint(constraint)
    normalized = _normalize(version)
    return any(fnmatchcase(normalized, pattern) for pattern in patterns)


class PackagesAclChecker(AclChecker):
    """Checks identities against the grants of their groups."""

    def is_package_granted(self, identity: Identity, package: Package) -> bool:
        if identity.is_admin:
            return True
        return package.id in identity.granted_package_ids()

    def is_version_granted(self, identity: Identity, version: Version) -> bool:
        if identity.is_admin:
            return True
        grants: List[AclGrant] = identity.grants_for(version.package_id)
        return any(version_matches(g.version_constraint, version.version) for g in grants)
