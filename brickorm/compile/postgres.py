"""PostgreSQL backend."""

from __future__ import annotations

from collections.abc import Iterator
from itertools import count

from brickorm.compile.base import COMMON_RESERVED, Backend


class PostgresBackend(Backend):
    """Capability table for PostgreSQL.

    Parameter style: ``$1, $2, ...`` – PostgreSQL's native positional form,
    accepted by ``asyncpg`` and by ``psycopg.RawCursor`` (psycopg >= 3.2).

    PostgreSQL can return generated columns from ``INSERT ... RETURNING``,
    so inserts take a single round trip.
    """

    quote_char = '"'
    reserved_idents = COMMON_RESERVED | frozenset({
        "ANALYSE", "ANALYZE", "ARRAY", "ASYMMETRIC", "BOTH", "CAST", "COLLATE",
        "CURRENT_CATALOG", "CURRENT_DATE", "CURRENT_ROLE", "CURRENT_TIME",
        "CURRENT_TIMESTAMP", "CURRENT_USER", "DEFERRABLE", "DO", "EXCEPT",
        "FALSE", "FETCH", "GRANT", "ILIKE", "INITIALLY", "INTERSECT",
        "LATERAL", "LEADING", "LOCALTIME", "LOCALTIMESTAMP", "OFFSET", "ONLY",
        "PLACING", "RETURNING", "SESSION_USER", "SOME", "SYMMETRIC",
        "TRAILING", "TRUE", "USER", "VARIADIC", "WINDOW",
    })
    supports_returning = True
    last_insert_id_sql = None

    @property
    def name(self) -> str:
        return "postgres"

    def placeholders(self) -> Iterator[str]:
        return (f"${n}" for n in count(1))

    def any_of(self, column: str, placeholder: str) -> str:
        return f"{column} = ANY({placeholder})"
