"""Unit of work wrapping multi-statement operations.

``unit_of_work`` joins a transaction the connection already has open.
Otherwise it opens one (explicitly with the backend's ``begin_sql`` when the
connection is in autocommit mode, implicitly through the driver otherwise),
commits on success and rolls back on any exception, including
``KeyboardInterrupt`` and generator closing.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from brickorm.runtime.executor import driver_errors

logger = logging.getLogger(__name__)

# psycopg.pq.TransactionStatus.IDLE
_PG_IDLE = 0


def in_transaction(conn: Any) -> bool:
    """Return ``True`` if ``conn`` has an open transaction."""
    info = getattr(conn, "info", None)
    status = getattr(info, "transaction_status", None)
    if status is not None:
        return int(status) != _PG_IDLE
    return bool(getattr(conn, "in_transaction", False))


def is_autocommit(conn: Any) -> bool:
    """Return ``True`` if statements on ``conn`` commit individually."""
    autocommit = getattr(conn, "autocommit", None)
    # sqlite3 reports LEGACY_TRANSACTION_CONTROL (-1) here, so compare to bools.
    if autocommit is True or autocommit is False:
        return autocommit
    return getattr(conn, "isolation_level", "") is None


def _execute(conn: Any, sql: str) -> None:
    logger.debug("execute: %s", sql)
    with driver_errors(sql):
        cursor = conn.cursor()
        try:
            cursor.execute(sql)
        finally:
            cursor.close()


@contextmanager
def unit_of_work(conn: Any, begin_sql: str = "BEGIN") -> Iterator[Any]:
    """Run the enclosed statements atomically on ``conn``.

    Args:
        conn: A PEP 249 connection (not a pool).
        begin_sql: Statement opening a transaction explicitly.

    Yields:
        ``conn``.
    """
    if in_transaction(conn):
        yield conn
        return

    explicit = is_autocommit(conn)
    if explicit:
        _execute(conn, begin_sql)
    try:
        yield conn
    except BaseException:
        logger.debug("rolling back unit of work")
        if explicit:
            _execute(conn, "ROLLBACK")
        else:
            with driver_errors("ROLLBACK"):
                conn.rollback()
        raise
    if explicit:
        _execute(conn, "COMMIT")
    else:
        with driver_errors("COMMIT"):
            conn.commit()
