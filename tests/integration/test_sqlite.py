"""Integration tests: declare → compile → execute against a real SQLite in-memory DB.

Covers every generated operation (get, all, paginated, update, delete,
setters, lookups, insert with database defaults), patches, conditional
queries, custom-typed and reserved-word columns, and error propagation.
"""
import sqlite3
from typing import Annotated, Optional

import pytest

from brickorm import Arg, ConditionalQuery, Patch, Table, When, orm
from brickorm.errors import (
    ConnectionFailure,
    MultipleRowsError,
    ReservedIdentifierWarning,
    RowNotFoundError,
)
from tests.fixtures import load_ddl


class User(Table):
    __brickorm__ = orm(
        table="users", id="user_id", insertable=True, deletable=True, backend="sqlite"
    )

    user_id: Annotated[int, orm(column="id", default=True, get_by_any="by_ids")]
    first_name: Annotated[str, orm(set=True)]
    last_name: str
    email: Annotated[str, orm(get_one=True, get_optional="find_by_email")]
    role: Annotated[str, orm(custom_type=True, default=True, get_many="by_role")]
    created_at: Annotated[str, orm(default=True)]
    disabled: Annotated[Optional[str], orm(set="disable")] = None


class UpdateName(Patch):
    __brickorm__ = orm(table_name="users", table=User, id="id")

    first_name: str
    last_name: str


USERS_BY_ROLE = ConditionalQuery(
    User,
    f"SELECT {User.__compiled__.columns} FROM users",
    When("role", "WHERE role =", Arg("role")),
    "ORDER BY id",
    When("limit", "LIMIT", Arg("limit")),
    backend="sqlite",
)


@pytest.fixture(scope="module")
def Tag():
    with pytest.warns(ReservedIdentifierWarning, match="order"):
        class Tag(Table):
            __brickorm__ = orm(table="tags", id="name", insertable=True, backend="sqlite")

            name: str
            order: int
            color: Optional[str] = None

    return Tag


@pytest.fixture()
def db() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.executescript(load_ddl("sqlite"))
    yield conn
    conn.close()


@pytest.fixture()
def people(db):
    rows = [
        ("Ada", "Lovelace", "ada@example.com"),
        ("Grace", "Hopper", "grace@example.com"),
        ("Alan", "Turing", "alan@example.com"),
    ]
    return [User.Insert(first_name=f, last_name=l, email=e).insert(db) for f, l, e in rows]


# ---------------------------------------------------------------------------
# Insert
# ---------------------------------------------------------------------------


def test_insert_reads_back_generated_values(db, people):
    ada = people[0]
    assert ada.user_id == 1
    assert ada.role == "member"
    assert ada.created_at
    assert [p.user_id for p in people] == [1, 2, 3]
    assert not db.in_transaction


def test_duplicate_insert_is_a_connection_failure(db, people):
    with pytest.raises(ConnectionFailure) as exc_info:
        User.Insert(first_name="A", last_name="B", email="ada@example.com").insert(db)
    assert isinstance(exc_info.value.__cause__, sqlite3.IntegrityError)
    assert len(User.all(db)) == 3


def test_insert_with_caller_supplied_identifier(db, Tag):
    tag = Tag.Insert(name="red", order=1).insert(db)
    assert tag == Tag(name="red", order=1, color=None)
    assert Tag.get(db, "red").order == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def test_get(db, people):
    assert User.get(db, 2) == people[1]
    with pytest.raises(RowNotFoundError):
        User.get(db, 99)


def test_all_and_paginated(db, people):
    assert [u.first_name for u in User.all(db)] == ["Ada", "Grace", "Alan"]
    page = list(User.stream_paginated(db, offset=1, limit=1))
    assert [u.first_name for u in page] == ["Grace"]


def test_stream_all_is_lazy(db, people):
    stream = User.stream_all(db)
    assert next(stream).first_name == "Ada"
    stream.close()


def test_lookups(db, people):
    assert User.by_email(db, "grace@example.com").first_name == "Grace"
    assert User.find_by_email(db, "nobody@example.com") is None
    assert len(User.by_role(db, "member")) == 3
    assert [u.user_id for u in User.by_ids(db, [1, 3])] == [1, 3]
    assert User.by_ids(db, []) == []


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def test_update_and_reload(db, people):
    ada = people[0]
    ada.role = "admin"
    ada.update(db)
    fresh = User.get(db, ada.user_id)
    assert fresh.role == "admin"

    fresh.last_name = "changed"
    fresh.reload(db)
    assert fresh.last_name == "Lovelace"


def test_setters(db, people):
    grace = people[1]
    grace.set_first_name(db, "Amazing Grace")
    grace.disable(db, "2024-01-01")
    stored = User.get(db, grace.user_id)
    assert stored.first_name == "Amazing Grace"
    assert stored.disabled == "2024-01-01"


def test_delete(db, people):
    people[2].delete(db)
    assert [u.user_id for u in User.all(db)] == [1, 2]
    with pytest.raises(RowNotFoundError):
        User.delete_row(db, people[2].user_id)
    assert len(User.all(db)) == 2


def test_patch(db, people):
    alan = people[2]
    alan.patch(db, UpdateName(first_name="Alan M.", last_name="Turing"))
    assert alan.first_name == "Alan M."
    stored = User.get(db, alan.user_id)
    assert (stored.first_name, stored.email) == ("Alan M.", "alan@example.com")


def test_reserved_column_round_trip(db, Tag):
    Tag.Insert(name="red", order=2, color="#f00").insert(db)
    tag = Tag.get(db, "red")
    tag.order = 5
    tag.update(db)
    assert Tag.get(db, "red").order == 5


# ---------------------------------------------------------------------------
# Conditional queries
# ---------------------------------------------------------------------------


def test_conditional_query_variants(db, people):
    db.execute("UPDATE users SET role = 'admin' WHERE id IN (1, 3)")

    assert len(USERS_BY_ROLE.fetch_all(db)) == 3
    admins = USERS_BY_ROLE.fetch_all(db, role="admin")
    assert [u.user_id for u in admins] == [1, 3]
    assert [u.user_id for u in USERS_BY_ROLE.fetch(db, role="admin", limit=1)] == [1]
    assert USERS_BY_ROLE.fetch_one(db, role="member").first_name == "Grace"
    with pytest.raises(MultipleRowsError):
        USERS_BY_ROLE.fetch_one(db, role="admin")
    assert USERS_BY_ROLE.fetch_optional(db, role="guest") is None
