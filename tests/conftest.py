"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from composer_mirror.common.config import MetadataConfig
from composer_mirror.packages.acl import PackagesAclChecker
from composer_mirror.packages.base import AclGrant, Identity, Package, Version
from composer_mirror.packages.dumper import MetadataDumper
from composer_mirror.packages.memory import InMemoryPackageStore
from composer_mirror.packages.urls import RouteUrlGenerator


def _dt(day: int) -> datetime:
    return datetime(2024, 1, day, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_packages():
    """acme/a with 1.0 and 2.0, acme/b with 1.0."""
    return [
        Package(
            id=1,
            name="acme/a",
            versions=(
                Version(
                    id=10,
                    package_id=1,
                    version="1.0",
                    version_normalized="1.0.0.0",
                    released_at=_dt(1),
                    attributes={"dist": {"type": "zip", "url": "https://dist.example/acme/a/1.0.zip"}},
                ),
                Version(
                    id=11,
                    package_id=1,
                    version="2.0",
                    version_normalized="2.0.0.0",
                    released_at=_dt(5),
                    attributes={"dist": {"type": "zip", "url": "https://dist.example/acme/a/2.0.zip"}},
                ),
            ),
        ),
        Package(
            id=2,
            name="acme/b",
            versions=(
                Version(id=20, package_id=2, version="1.0", version_normalized="1.0.0.0", released_at=_dt(3)),
            ),
        ),
    ]


@pytest.fixture
def sample_version_fields():
    return {
        10: {"require": {"php": ">=8.1"}},
        11: {"require": {"php": ">=8.2", "acme/b": "^1.0"}},
        20: {"require": {"php": ">=8.1"}, "suggest": {"ext-zip": "for archives"}},
    }


@pytest.fixture
def memory_store(sample_packages, sample_version_fields):
    return InMemoryPackageStore(sample_packages, sample_version_fields)


@pytest.fixture
def url_generator():
    return RouteUrlGenerator()


@pytest.fixture
def dumper(memory_store, url_generator):
    return MetadataDumper(memory_store, PackagesAclChecker(), url_generator, MetadataConfig())


@pytest.fixture
def limited_identity():
    """Granted acme/a, but only its 1.0 release."""
    return Identity(id=1, username="alice", grants=(AclGrant(package_id=1, version_constraint="1.0"),))


@pytest.fixture
def admin_identity():
    return Identity(id=2, username="root", is_admin=True)


@pytest.fixture
def db_session():
    """In-memory SQLite session with the server schema."""
    from mirror_server.db.base import Base
    import mirror_server.db.models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()
