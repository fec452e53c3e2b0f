"""Database models for the mirror server."""

from mirror_server.db.models.package import PackageModel, VersionModel, VersionLinkModel
from mirror_server.db.models.user import (
    GroupAclPermissionModel,
    GroupModel,
    UserModel,
    group_members,
)

__all__ = [
    "GroupAclPermissionModel",
    "GroupModel",
    "PackageModel",
    "UserModel",
    "VersionLinkModel",
    "VersionModel",
    "group_members",
]
