"""Shared pytest fixtures for brickORM unit and integration tests."""
from __future__ import annotations

import pytest

from brickorm.compile.mysql import MySQLBackend
from brickorm.compile.postgres import PostgresBackend
from brickorm.compile.sqlite import SQLiteBackend
from brickorm.config import reset_settings
from brickorm.schema.declaration import TableDeclaration
from tests.fixtures import RecordingConnection, load_declaration


@pytest.fixture(autouse=True)
def _default_settings():
    """Every test starts and ends with the default settings."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="session")
def users_decl() -> TableDeclaration:
    """Canonical ``users`` declaration shared across tests."""
    return load_declaration("users")


@pytest.fixture()
def pg() -> PostgresBackend:
    return PostgresBackend()


@pytest.fixture()
def sq() -> SQLiteBackend:
    return SQLiteBackend()


@pytest.fixture()
def my() -> MySQLBackend:
    return MySQLBackend()


@pytest.fixture()
def recording() -> RecordingConnection:
    return RecordingConnection()
