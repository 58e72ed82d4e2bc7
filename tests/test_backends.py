"""Unit tests for the backend capability tables and BackendFactory."""

from __future__ import annotations

from itertools import islice

import pytest

from brickorm.compile.base import CompiledStatement
from brickorm.compile.postgres import PostgresBackend
from brickorm.compile.registry import BackendFactory, resolve_backend
from brickorm.config import configure
from brickorm.errors import CompilationError


def test_postgres_placeholders_are_numbered(pg):
    assert list(islice(pg.placeholders(), 3)) == ["$1", "$2", "$3"]


def test_postgres_placeholders_restart_per_statement(pg):
    first = pg.placeholders()
    next(first)
    next(first)
    assert next(pg.placeholders()) == "$1"


def test_qmark_placeholders_repeat(sq, my):
    assert list(islice(sq.placeholders(), 3)) == ["?", "?", "?"]
    assert list(islice(my.placeholders(), 2)) == ["?", "?"]


def test_reserved_identifier_is_quoted(pg, sq, my):
    assert pg.quote("order") == '"order"'
    assert sq.quote("group") == '"group"'
    assert my.quote("order") == "`order`"


def test_plain_identifier_is_not_quoted(pg):
    assert pg.quote("first_name") == "first_name"


def test_reserved_lookup_is_case_insensitive(pg):
    assert pg.is_reserved("Select")
    assert pg.is_reserved("USER")
    assert not pg.is_reserved("username")


def test_force_quote_doubles_embedded_quote(pg, my):
    assert pg.quote('a"b', force=True) == '"a""b"'
    assert my.quote("a`b", force=True) == "`a``b`"


def test_dialect_specific_reserved_words(pg, sq):
    assert pg.is_reserved("returning")
    assert not sq.is_reserved("returning")
    assert sq.is_reserved("pragma")


def test_insert_capabilities(pg, sq, my):
    assert pg.supports_returning
    assert not sq.supports_returning and sq.last_insert_id_sql == "SELECT last_insert_rowid()"
    assert not my.supports_returning and my.last_insert_id_sql == "SELECT LAST_INSERT_ID()"
    assert my.begin_sql == "START TRANSACTION"


def test_any_of_predicates(pg, sq, my):
    assert pg.any_of("id", "$1") == "id = ANY($1)"
    assert my.any_of("id", "?") == "id MEMBER OF (?)"
    assert sq.any_of("id", "?") == "id IN (SELECT value FROM json_each(?))"


def test_bind_array(pg, sq, my):
    assert pg.bind_array((1, 2)) == [1, 2]
    assert sq.bind_array([1, 2]) == "[1, 2]"
    assert my.bind_array(["a"]) == '["a"]'


# ---------------------------------------------------------------------------
# CompiledStatement
# ---------------------------------------------------------------------------


class TestCompiledStatementBind:
    def test_binds_fields_and_arguments_in_order(self):
        class Row:
            first_name = "Ada"
            user_id = 7

        stmt = CompiledStatement("UPDATE ...", ("first_name", "$value", "user_id"), "sqlite")
        assert stmt.bind(Row(), value="x") == ("Ada", "x", 7)

    def test_no_params(self):
        assert CompiledStatement("SELECT 1", (), "sqlite").bind() == ()


# ---------------------------------------------------------------------------
# BackendFactory
# ---------------------------------------------------------------------------


class TestBackendFactory:
    def test_builtin_backends_registered(self):
        assert {"postgres", "mysql", "sqlite"} <= set(BackendFactory.registered_backends())

    def test_create_returns_fresh_instance(self):
        assert BackendFactory.create("postgres") is not BackendFactory.create("postgres")

    def test_unknown_backend_raises(self):
        with pytest.raises(CompilationError, match="Unsupported backend"):
            BackendFactory.create("oracle")

    def test_register_decorator(self):
        @BackendFactory.register("cockroach-test")
        class CockroachBackend(PostgresBackend):
            @property
            def name(self) -> str:
                return "cockroach-test"

        try:
            assert BackendFactory.create("cockroach-test").name == "cockroach-test"
        finally:
            BackendFactory._backends.pop("cockroach-test")

    def test_resolve_backend(self, sq):
        assert resolve_backend(sq) is sq
        assert resolve_backend("mysql").name == "mysql"
        assert resolve_backend(None).name == "postgres"
        configure(default_backend="sqlite")
        assert resolve_backend(None).name == "sqlite"
