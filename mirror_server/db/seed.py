"""Database seeding for the mirror server.

Imports a package catalog into the database, creates groups with
package grants and users with API tokens.

Run as ``python -m mirror_server.db.seed --catalog catalog.yaml`` to
create the schema and import a catalog.
"""

import argparse
import sys
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import yaml
from sqlalchemy.orm import Session

from composer_mirror.common.logger import get_logger
from composer_mirror.packages.acl import range_patterns
from composer_mirror.packages.memory import parse_catalog, read_catalog
from mirror_server.core.api_token import generate_api_token, hash_api_token
from mirror_server.db.models import (
    GroupAclPermissionModel,
    GroupModel,
    PackageModel,
    UserModel,
    VersionLinkModel,
    VersionModel,
)

logger = get_logger("seed")


def seed_catalog(db: Session, catalog: Mapping) -> Dict[str, PackageModel]:
    """
    Import a catalog mapping (see composer_mirror.packages.memory.parse_catalog).

    Packages that already exist are kept as they are.

    Args:
        db: Database session
        catalog: Catalog mapping

    Returns:
        Dict mapping package name to its PackageModel
    """
    store = parse_catalog(catalog)
    packages = store.list_visible_packages(None)
    version_fields = store.batch_load_version_fields(store.list_version_ids(p.id for p in packages))

    seeded = {}
    for package in packages:
        existing = db.query(PackageModel).filter(PackageModel.name == package.name).first()
        if existing:
            seeded[package.name] = existing
            continue

        model = PackageModel(name=package.name)
        for version in package.versions:
            version_model = VersionModel(
                version=version.version,
                version_normalized=version.version_normalized,
                released_at=version.released_at,
                attributes=dict(version.attributes),
            )
            if version.updated_at is not None:
                version_model.updated_at = version.updated_at
            for link_type, targets in version_fields.get(version.id, {}).items():
                for target, constraint in (targets or {}).items():
                    version_model.links.append(
                        VersionLinkModel(link_type=link_type, package_name=target, constraint=str(constraint))
                    )
            model.versions.append(version_model)

        db.add(model)
        seeded[package.name] = model

    db.flush()
    return seeded


def seed_group(
    db: Session,
    name: str,
    grants: Mapping[str, Optional[str]],
    members: Iterable[UserModel] = (),
) -> GroupModel:
    """
    Create a group granting packages to its members.

    Args:
        db: Database session
        name: Group name
        grants: Package name -> version constraint (None for every version)
        members: Users to add to the group

    Returns:
        Created group

    Raises:
        ValueError: If a granted package does not exist
            or a constraint uses Composer range syntax
    """
    group = GroupModel(name=name)
    for package_name, constraint in grants.items():
        if range_patterns(constraint):
            raise ValueError(
                f"Constraint '{constraint}' for {package_name} uses range syntax; "
                f"use glob patterns such as 1.* || 2.0.*"
            )
        package = db.query(PackageModel).filter(PackageModel.name == package_name).first()
        if package is None:
            raise ValueError(f"Unknown package: {package_name}")
        group.permissions.append(GroupAclPermissionModel(package_id=package.id, version=constraint))

    group.members.extend(members)
    db.add(group)
    db.flush()
    return group


def seed_user(
    db: Session,
    username: str,
    is_admin: bool = False,
    token: Optional[str] = None,
) -> Tuple[UserModel, str]:
    """
    Create a user with an API token.

    Only the token hash is stored; the returned token is the one chance
    to hand it to the user.

    Args:
        db: Database session
        username: Username
        is_admin: Whether the user bypasses package grants
        token: Token to assign; generated when None

    Returns:
        (user, token) tuple

    Raises:
        ValueError: If the username is taken
    """
    if db.query(UserModel).filter(UserModel.username == username).first():
        raise ValueError(f"User already exists: {username}")

    if token is None:
        token, token_hash = generate_api_token()
    else:
        token_hash = hash_api_token(token)

    user = UserModel(username=username, api_token_hash=token_hash, is_admin=is_admin)
    db.add(user)
    db.flush()
    logger.info(f"Created user {username}{' (admin)' if is_admin else ''}")
    return user, token


def main(argv: Optional[List[str]] = None) -> int:
    """Create the schema, then import a catalog and an admin user if asked."""
    from mirror_server.db.session import SessionLocal, init_db

    parser = argparse.ArgumentParser(
        prog="composer-mirror-seed",
        description="Create the mirror database schema and seed it",
    )
    parser.add_argument("--catalog", help="Catalog file (YAML) to import")
    parser.add_argument("--admin", metavar="USERNAME", help="Create an admin user and print its token")
    args = parser.parse_args(argv)

    init_db()
    db = SessionLocal()
    try:
        if args.catalog:
            seeded = seed_catalog(db, read_catalog(args.catalog))
            print(f"Packages: {len(seeded)}")

        if args.admin:
            user, token = seed_user(db, args.admin, is_admin=True)
            print(f"Created admin: {user.username}")
            print(f"API token (shown once): {token}")

        db.commit()
        print("Seeding complete!")
    except (FileNotFoundError, TypeError, ValueError, yaml.YAMLError) as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
