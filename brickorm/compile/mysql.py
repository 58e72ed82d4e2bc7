"""MySQL backend."""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from itertools import repeat
from typing import Any

from brickorm.compile.base import COMMON_RESERVED, Backend


class MySQLBackend(Backend):
    """Capability table for MySQL / MariaDB.

    Parameter style: ``?`` – accepted by ``mysql-connector-python`` prepared
    cursors and the MariaDB connector.

    Note: MySQL has no ``INSERT ... RETURNING``.  Inserts read the generated
    identifier back with ``LAST_INSERT_ID()``, which is scoped to the
    connection, and fetch remaining defaults in the same transaction.

    Identifiers are quoted with backticks (`` ` ``) rather than double-quotes.
    """

    quote_char = "`"
    reserved_idents = COMMON_RESERVED | frozenset({
        "ACCESSIBLE", "ADD", "ANALYZE", "BEFORE", "BIGINT", "BINARY", "BLOB",
        "BOTH", "CALL", "CHANGE", "CHAR", "CHARACTER", "CONDITION",
        "CONTINUE", "CONVERT", "CURRENT_DATE", "CURRENT_TIME",
        "CURRENT_TIMESTAMP", "CURRENT_USER", "DATABASE", "DATABASES",
        "DECIMAL", "DECLARE", "DELAYED", "DESCRIBE", "DIV", "DOUBLE", "EACH",
        "ELSEIF", "EXIT", "EXPLAIN", "FALSE", "FETCH", "FLOAT", "FORCE",
        "FULLTEXT", "GENERATED", "GRANT", "GROUPS", "IF", "IGNORE", "INDEX",
        "INT", "INTEGER", "INTERVAL", "KEY", "KEYS", "KILL", "LEADING",
        "LEAVE", "LINES", "LOAD", "LOCK", "LONG", "LOOP", "MATCH", "MOD",
        "NATURAL", "OPTION", "OUT", "PARTITION", "PROCEDURE", "RANGE", "RANK",
        "READ", "REAL", "REGEXP", "RELEASE", "RENAME", "REPEAT", "REPLACE",
        "REQUIRE", "RETURN", "REVOKE", "RLIKE", "ROW", "ROWS", "SCHEMA",
        "SHOW", "SIGNAL", "SPATIAL", "SQL", "SSL", "STARTING", "TRAILING",
        "TRIGGER", "TRUE", "UNDO", "UNLOCK", "UNSIGNED", "USAGE", "USE",
        "VARCHAR", "WHILE", "WRITE", "XOR", "ZEROFILL",
    })
    supports_returning = False
    last_insert_id_sql = "SELECT LAST_INSERT_ID()"
    begin_sql = "START TRANSACTION"

    @property
    def name(self) -> str:
        return "mysql"

    def placeholders(self) -> Iterator[str]:
        return repeat("?")

    def any_of(self, column: str, placeholder: str) -> str:
        # MEMBER OF requires MySQL 8.0.17+; the argument is a JSON array.
        return f"{column} MEMBER OF ({placeholder})"

    def bind_array(self, values: Sequence[Any]) -> Any:
        return json.dumps(list(values), default=str)
