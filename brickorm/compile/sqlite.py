"""SQLite backend."""
from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from itertools import repeat
from typing import Any

from brickorm.compile.base import COMMON_RESERVED, Backend


class SQLiteBackend(Backend):
    """Capability table for SQLite.

    Parameter style: ``?`` – compatible with Python's built-in ``sqlite3``
    positional-parameter execution (``cursor.execute(sql, tuple)``).

    Inserts use the two-step strategy (``last_insert_rowid()`` plus a
    follow-up ``SELECT`` for defaulted columns) so they work on every SQLite
    version the standard library may be linked against.
    """

    quote_char = '"'
    reserved_idents = COMMON_RESERVED | frozenset({
        "ABORT", "ACTION", "ADD", "AFTER", "ANALYZE", "ATTACH", "AUTOINCREMENT",
        "BEFORE", "BEGIN", "CASCADE", "CAST", "COLLATE", "COMMIT", "CONFLICT",
        "CURRENT_DATE", "CURRENT_TIME", "CURRENT_TIMESTAMP", "DATABASE",
        "DEFERRABLE", "DEFERRED", "DETACH", "EACH", "ESCAPE", "EXCEPT",
        "EXCLUSIVE", "EXPLAIN", "FAIL", "FULL", "GLOB", "IF", "IGNORE",
        "IMMEDIATE", "INDEX", "INDEXED", "INITIALLY", "INSTEAD", "INTERSECT",
        "ISNULL", "KEY", "MATCH", "NATURAL", "NO", "NOTNULL", "OF", "OFFSET",
        "PLAN", "PRAGMA", "QUERY", "RAISE", "RECURSIVE", "REGEXP", "REINDEX",
        "RELEASE", "RENAME", "REPLACE", "RESTRICT", "ROLLBACK", "ROW",
        "SAVEPOINT", "TEMP", "TEMPORARY", "TRANSACTION", "TRIGGER", "VACUUM",
        "VIEW", "VIRTUAL",
    })
    supports_returning = False
    last_insert_id_sql = "SELECT last_insert_rowid()"

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholders(self) -> Iterator[str]:
        return repeat("?")

    def any_of(self, column: str, placeholder: str) -> str:
        return f"{column} IN (SELECT value FROM json_each({placeholder}))"

    def bind_array(self, values: Sequence[Any]) -> Any:
        return json.dumps(list(values), default=str)
