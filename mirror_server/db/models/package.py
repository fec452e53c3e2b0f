"""Package and version database models.

Packages own an ordered list of versions; each version owns its link
rows (require, conflict, ...) which are loaded in bulk when metadata is
dumped.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Text
from sqlalchemy.orm import relationship

from mirror_server.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PackageModel(Base):
    """A package served by the repository."""
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    repository_url = Column(Text, nullable=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    versions = relationship(
        "VersionModel",
        back_populates="package",
        order_by="VersionModel.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Package {self.name}>"


class VersionModel(Base):
    """
    A released version of a package.

    Static Composer fields (dist, source, license, ...) live in the
    ``attributes`` JSON column; links are stored as separate rows.
    """
    __tablename__ = "versions"

    id = Column(Integer, primary_key=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(String(100), nullable=False)
    version_normalized = Column(String(100), nullable=False, default="")
    attributes = Column(JSON, nullable=False, default=dict)

    released_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    package = relationship("PackageModel", back_populates="versions")
    links = relationship("VersionLinkModel", back_populates="version", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Version {self.version} of package {self.package_id}>"


class VersionLinkModel(Base):
    """One dependency-style link of a version (e.g. require php >=8.1)."""
    __tablename__ = "version_links"

    id = Column(Integer, primary_key=True)
    version_id = Column(Integer, ForeignKey("versions.id", ondelete="CASCADE"), nullable=False, index=True)
    link_type = Column(String(20), nullable=False)  # require, require-dev, conflict, provide, replace, suggest
    package_name = Column(String(255), nullable=False)
    constraint = Column(String(255), nullable=False, default="*")

    version = relationship("VersionModel", back_populates="links")

    def __repr__(self) -> str:
        return f"<VersionLink {self.link_type} {self.package_name} {self.constraint}>"
