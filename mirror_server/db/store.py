"""SQLAlchemy backed package store.

Implements the PackageStore interface of the metadata dumper on top of
the server models. Versions are eager-loaded with their packages and
link rows are fetched with one IN query per batch.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from composer_mirror.common.logger import get_logger
from composer_mirror.packages.base import AclGrant, Identity, Package, PackageStore, Version
from mirror_server.core.api_token import hash_api_token
from mirror_server.db.models import (
    GroupAclPermissionModel,
    GroupModel,
    PackageModel,
    UserModel,
    VersionLinkModel,
    VersionModel,
    group_members,
)

logger = get_logger("sql_store")


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; treat stored naive datetimes as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_version(model: VersionModel) -> Version:
    return Version(
        id=model.id,
        package_id=model.package_id,
        version=model.version,
        version_normalized=model.version_normalized or model.version,
        released_at=_utc(model.released_at),
        updated_at=_utc(model.updated_at),
        attributes=dict(model.attributes or {}),
    )


def to_package(model: PackageModel) -> Package:
    return Package(
        id=model.id,
        name=model.name,
        versions=tuple(to_version(v) for v in model.versions),
    )


def identity_from_user(user: UserModel) -> Identity:
    """Resolve a user's group grants into an Identity."""
    grants = tuple(
        AclGrant(package_id=permission.package_id, version_constraint=permission.version)
        for group in user.groups
        for permission in group.permissions
    )
    return Identity(
        id=user.id,
        username=user.username,
        grants=grants,
        is_admin=bool(user.is_admin),
        expired_updates_at=_utc(user.expired_updates_at),
    )


class SqlPackageStore(PackageStore):
    """PackageStore reading from a SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def _packages_query(self):
        return select(PackageModel).options(selectinload(PackageModel.versions)).order_by(PackageModel.name)

    def list_visible_packages(self, identity: Optional[Identity]) -> List[Package]:
        query = self._packages_query()
        if identity is not None and not identity.is_admin:
            allowed = (
                select(GroupAclPermissionModel.package_id)
                .join(GroupModel, GroupModel.id == GroupAclPermissionModel.group_id)
                .join(group_members, group_members.c.group_id == GroupModel.id)
                .where(group_members.c.user_id == identity.id)
            )
            query = query.where(PackageModel.id.in_(allowed))

        return [to_package(model) for model in self.session.scalars(query).all()]

    def find_package(self, name: str) -> Optional[Package]:
        model = self.session.scalars(self._packages_query().where(PackageModel.name == name)).first()
        return to_package(model) if model else None

    def list_version_ids(self, package_ids: Iterable[int]) -> List[int]:
        package_ids = list(package_ids)
        if not package_ids:
            return []
        query = select(VersionModel.id).where(VersionModel.package_id.in_(package_ids))
        return list(self.session.scalars(query).all())

    def batch_load_version_fields(self, version_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        version_ids = list(version_ids)
        if not version_ids:
            return {}

        query = (
            select(VersionLinkModel)
            .where(VersionLinkModel.version_id.in_(version_ids))
            .order_by(VersionLinkModel.version_id, VersionLinkModel.id)
        )
        data: Dict[int, Dict[str, Any]] = defaultdict(dict)
        for link in self.session.scalars(query).all():
            data[link.version_id].setdefault(link.link_type, {})[link.package_name] = link.constraint

        logger.debug(f"Loaded links for {len(data)} of {len(version_ids)} versions")
        return dict(data)

    def find_user_by_token(self, token: str) -> Optional[UserModel]:
        """Find the active user owning a token, matched by its hash."""
        query = (
            select(UserModel)
            .options(selectinload(UserModel.groups).selectinload(GroupModel.permissions))
            .where(UserModel.api_token_hash == hash_api_token(token), UserModel.is_active.is_(True))
        )
        return self.session.scalars(query).first()
