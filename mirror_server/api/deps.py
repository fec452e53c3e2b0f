from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from composer_mirror.common.config import MirrorCoreConfig
from composer_mirror.packages.acl import PackagesAclChecker
from composer_mirror.packages.base import Identity, PackageStore
from composer_mirror.packages.dumper import MetadataDumper
from composer_mirror.packages.urls import RouteUrlGenerator
from mirror_server.core.config import get_settings
from mirror_server.db.session import SessionLocal
from mirror_server.db.store import SqlPackageStore, identity_from_user

settings = get_settings()

api_key_header = APIKeyHeader(name=settings.api_key_header, auto_error=False)


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_core_config() -> MirrorCoreConfig:
    return settings.core_config()


def get_store(db: Session = Depends(get_db)) -> PackageStore:
    return SqlPackageStore(db)


def get_dumper(
    store: PackageStore = Depends(get_store),
    config: MirrorCoreConfig = Depends(get_core_config),
) -> MetadataDumper:
    return MetadataDumper(
        store,
        PackagesAclChecker(),
        RouteUrlGenerator(config.routes, config.base_url),
        config.metadata,
    )


def get_current_identity(
    db: Session = Depends(get_db),
    api_key: Optional[str] = Depends(api_key_header),
    token: Optional[str] = Query(None),
) -> Optional[Identity]:
    """Resolve the requesting identity from an API key header or token.

    Returns None for anonymous requests when anonymous access is enabled.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )

    credential = api_key or token
    if credential:
        user = SqlPackageStore(db).find_user_by_token(credential)
        if user is None:
            raise credentials_exception
        return identity_from_user(user)

    if settings.anonymous_access:
        return None

    raise credentials_exception
