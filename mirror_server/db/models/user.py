"""User and group database models.

Groups grant their members access to packages. Each grant may restrict
the visible versions with a constraint such as ``1.* || 2.0.*``.
"""

from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from mirror_server.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


group_members = Table(
    "group_members",
    Base.metadata,
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    # sha256 hex digest of the API token; the token itself is never stored
    api_token_hash = Column(String(64), unique=True, nullable=True, index=True)
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    # Versions released after this date are hidden from the user
    expired_updates_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    groups = relationship("GroupModel", secondary=group_members, back_populates="members")

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class GroupModel(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    members = relationship("UserModel", secondary=group_members, back_populates="groups")
    permissions = relationship("GroupAclPermissionModel", back_populates="group", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Group {self.name}>"


class GroupAclPermissionModel(Base):
    """Grant of one package to a group."""
    __tablename__ = "group_acl_permissions"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(String(255), nullable=True)  # constraint, NULL grants every version

    group = relationship("GroupModel", back_populates="permissions")
    package = relationship("PackageModel")

    def __repr__(self) -> str:
        return f"<GroupAclPermission group={self.group_id} package={self.package_id}>"
