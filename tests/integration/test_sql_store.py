"""Tests for the SQLAlchemy package store.

Run with: pytest tests/integration/test_sql_store.py -m integration
Uses an in-memory SQLite database; the seed command tests use a file in tmp_path.
"""

import hashlib
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.orm import sessionmaker

from composer_mirror.packages.acl import PackagesAclChecker
from composer_mirror.packages.dumper import MetadataDumper
from composer_mirror.packages.urls import RouteUrlGenerator
from mirror_server.api.deps import get_db
from mirror_server.api.main import app
from mirror_server.core.api_token import TOKEN_PREFIX, hash_api_token
from mirror_server.db import session as db_session_module
from mirror_server.db.seed import main as seed_main
from mirror_server.db.seed import seed_catalog, seed_group, seed_user
from mirror_server.db.store import SqlPackageStore, identity_from_user


pytestmark = [pytest.mark.integration]


CATALOG = {
    "packages": {
        "acme/a": {
            "versions": {
                "1.0": {
                    "released_at": "2024-01-01T00:00:00",
                    "dist": {"type": "zip", "url": "https://dist.example/a-1.0.zip"},
                    "require": {"php": ">=8.1"},
                },
                "2.0": {
                    "released_at": "2024-03-01T00:00:00",
                    "require": {"php": ">=8.2", "acme/b": "^1.0"},
                    "require-dev": {"phpunit/phpunit": "^10"},
                },
            }
        },
        "acme/b": {
            "versions": {
                "1.0": {"released_at": "2024-02-01T00:00:00"},
            }
        },
    }
}


@pytest.fixture
def seeded(db_session):
    packages = seed_catalog(db_session, CATALOG)

    alice, _ = seed_user(db_session, "alice", token="alice-token")
    admin, _ = seed_user(db_session, "root", is_admin=True, token="root-token")
    expired, _ = seed_user(db_session, "old", token="old-token")
    expired.expired_updates_at = datetime(2024, 2, 15)
    db_session.flush()

    seed_group(db_session, "customers", {"acme/a": "1.0"}, members=[alice])
    seed_group(db_session, "legacy", {"acme/a": None, "acme/b": None}, members=[expired])
    db_session.commit()

    return {"packages": packages, "alice": alice, "admin": admin, "expired": expired}


@pytest.fixture
def store(db_session, seeded):
    return SqlPackageStore(db_session)


@pytest.fixture
def sql_dumper(store):
    return MetadataDumper(store, PackagesAclChecker(), RouteUrlGenerator())


class TestSeeding:

    def test_seed_catalog_is_idempotent(self, db_session, seeded):
        again = seed_catalog(db_session, CATALOG)

        assert again["acme/a"].id == seeded["packages"]["acme/a"].id
        assert len(again["acme/a"].versions) == 2

    def test_seed_group_unknown_package(self, db_session, seeded):
        with pytest.raises(ValueError, match="Unknown package"):
            seed_group(db_session, "broken", {"acme/zzz": None})

    @pytest.mark.parametrize("constraint", ["^1.0", ">=1.2", "1.* || ~2.0"])
    def test_seed_group_rejects_range_constraints(self, db_session, seeded, constraint):
        with pytest.raises(ValueError, match="range syntax"):
            seed_group(db_session, "ranges", {"acme/a": constraint})

    def test_seed_user_stores_only_token_hash(self, db_session, seeded):
        user, token = seed_user(db_session, "carol")

        assert token.startswith(TOKEN_PREFIX)
        assert user.api_token_hash == hash_api_token(token)
        assert token not in {user.api_token_hash, user.username}

    def test_seed_user_duplicate_username(self, db_session, seeded):
        with pytest.raises(ValueError, match="already exists"):
            seed_user(db_session, "alice")


class TestSqlPackageStore:

    def test_list_all_packages(self, store):
        assert [p.name for p in store.list_visible_packages(None)] == ["acme/a", "acme/b"]

    def test_list_packages_for_identity(self, store, seeded):
        identity = identity_from_user(seeded["alice"])

        assert [p.name for p in store.list_visible_packages(identity)] == ["acme/a"]

    def test_admin_sees_all(self, store, seeded):
        identity = identity_from_user(seeded["admin"])

        assert len(store.list_visible_packages(identity)) == 2

    def test_find_package(self, store):
        package = store.find_package("acme/a")

        assert package is not None
        assert [v.version for v in package.versions] == ["1.0", "2.0"]
        assert package.versions[0].released_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert package.versions[0].attributes["dist"]["type"] == "zip"
        assert store.find_package("acme/missing") is None

    def test_list_version_ids(self, store):
        package = store.find_package("acme/a")

        assert sorted(store.list_version_ids([package.id])) == sorted(v.id for v in package.versions)
        assert store.list_version_ids([]) == []

    def test_batch_load_version_fields(self, store):
        first, second = store.find_package("acme/a").versions

        data = store.batch_load_version_fields([first.id, second.id])

        assert data[first.id] == {"require": {"php": ">=8.1"}}
        assert data[second.id] == {
            "require": {"php": ">=8.2", "acme/b": "^1.0"},
            "require-dev": {"phpunit/phpunit": "^10"},
        }

    def test_batch_load_is_single_query(self, db_session, store):
        version_ids = store.list_version_ids(p.id for p in store.list_visible_packages(None))
        statements = []

        def count(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        engine = db_session.get_bind()
        event.listen(engine, "before_cursor_execute", count)
        try:
            store.batch_load_version_fields(version_ids)
        finally:
            event.remove(engine, "before_cursor_execute", count)

        assert len(statements) == 1

    def test_identity_from_user(self, seeded):
        identity = identity_from_user(seeded["alice"])

        assert identity.username == "alice"
        assert not identity.is_admin
        assert [g.version_constraint for g in identity.grants] == ["1.0"]

    def test_find_user_by_token(self, store):
        assert store.find_user_by_token("alice-token").username == "alice"
        assert store.find_user_by_token("nope") is None

    def test_generated_token_resolves_user(self, db_session, store):
        _, token = seed_user(db_session, "dave")

        assert store.find_user_by_token(token).username == "dave"

    def test_stored_hash_is_not_a_credential(self, store, seeded):
        assert store.find_user_by_token(seeded["alice"].api_token_hash) is None

    def test_inactive_user_not_found(self, db_session, store, seeded):
        seeded["alice"].is_active = False
        db_session.flush()

        assert store.find_user_by_token("alice-token") is None


class TestSqlDump:

    def test_limited_identity_dump(self, sql_dumper, seeded):
        result = sql_dumper.dump(identity_from_user(seeded["alice"]))

        assert list(result.packages) == ["acme/a"]
        versions = result.packages["acme/a"].decode_json()["packages"]["acme/a"]
        assert list(versions) == ["1.0"]
        assert versions["1.0"]["require"] == {"php": ">=8.1"}

    def test_update_window(self, sql_dumper, seeded):
        result = sql_dumper.dump(identity_from_user(seeded["expired"]))

        versions = result.packages["acme/a"].decode_json()["packages"]["acme/a"]
        assert list(versions) == ["1.0"]
        assert "acme/b" in result.packages

    def test_hashes_verify(self, sql_dumper):
        result = sql_dumper.dump()

        for name, entry in result.providers.decode_json()["providers"].items():
            assert entry["sha256"] == hashlib.sha256(result.packages[name].get_content()).hexdigest()

    def test_dump_package_matches_dump(self, sql_dumper, seeded):
        identity = identity_from_user(seeded["alice"])
        result = sql_dumper.dump(identity)

        assert result.packages["acme/a"].decode_json()["packages"]["acme/a"] == sql_dumper.dump_package(
            identity, "acme/a"
        )


class TestApiAuthentication:

    @pytest.fixture
    def client(self, db_session, seeded):
        app.dependency_overrides[get_db] = lambda: db_session
        try:
            yield TestClient(app)
        finally:
            app.dependency_overrides.clear()

    def test_api_key_header(self, client):
        response = client.get("/packages.json", headers={"X-API-Key": "alice-token"})

        assert response.status_code == 200
        assert response.json()["available-packages"] == ["acme/a"]

    def test_token_query_parameter(self, client):
        response = client.get("/p2/acme/b.json", params={"token": "root-token"})

        assert response.status_code == 200

    def test_invalid_token(self, client):
        response = client.get("/packages.json", headers={"X-API-Key": "wrong"})

        assert response.status_code == 401

    def test_anonymous_rejected_by_default(self, client):
        assert client.get("/packages.json").status_code == 401


class TestSeedCommand:

    @pytest.fixture
    def fresh_database(self, tmp_path, monkeypatch):
        engine = create_engine(f"sqlite:///{tmp_path / 'mirror.db'}")
        monkeypatch.setattr(db_session_module, "engine", engine)
        monkeypatch.setattr(db_session_module, "SessionLocal", sessionmaker(bind=engine, autoflush=False))
        try:
            yield engine
        finally:
            engine.dispose()

    def test_creates_schema_and_imports_catalog(self, tmp_path, fresh_database, capsys):
        catalog = tmp_path / "catalog.yaml"
        catalog.write_text(
            "packages:\n"
            "  acme/a:\n"
            "    versions:\n"
            "      '1.0':\n"
            "        released_at: 2024-01-01T00:00:00\n"
            "        require: {php: '>=8.1'}\n"
        )

        exit_code = seed_main(["--catalog", str(catalog), "--admin", "root"])

        assert exit_code == 0
        assert {"packages", "versions", "users", "groups"} <= set(inspect(fresh_database).get_table_names())

        output = capsys.readouterr().out.splitlines()
        token = next(line for line in output if line.startswith("API token")).split(": ", 1)[1]
        session = db_session_module.SessionLocal()
        try:
            store = SqlPackageStore(session)
            assert store.find_package("acme/a") is not None
            assert store.find_user_by_token(token).is_admin
        finally:
            session.close()

    def test_schema_only(self, fresh_database):
        assert seed_main([]) == 0
        assert "version_links" in inspect(fresh_database).get_table_names()

    def test_missing_catalog(self, tmp_path, fresh_database, capsys):
        exit_code = seed_main(["--catalog", str(tmp_path / "missing.yaml")])

        assert exit_code == 1
        assert "Error:" in capsys.readouterr().err
