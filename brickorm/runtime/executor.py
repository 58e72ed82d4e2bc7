"""Execution of compiled statements against a DB-API handle.

A *handle* is either a PEP 249 connection, or a pool exposing a
``connection()`` context manager (``psycopg_pool.ConnectionPool`` style)
from which one connection is borrowed per operation.

Every exception raised by the driver is re-raised as
:class:`~brickorm.errors.ConnectionFailure` chained to the original;
pydantic validation errors raised while materialising rows become
:class:`~brickorm.errors.DecodeFailureError`.  Nothing is retried.

Streams are generators.  They hold their cursor, and for pools their borrowed
connection, until exhausted, closed or garbage collected.  A failure after
some rows were yielded is raised from the generator at that point; rows
already yielded stay valid.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from brickorm.compile.columns import output_name
from brickorm.config import get_settings
from brickorm.errors import (
    BrickORMError,
    ConnectionFailure,
    DecodeFailureError,
    MultipleRowsError,
    RowNotFoundError,
)

logger = logging.getLogger(__name__)

Decoder = Callable[[Mapping[str, Any]], Any]


# ---------------------------------------------------------------------------
# Handles and cursors
# ---------------------------------------------------------------------------


def is_pool(handle: Any) -> bool:
    """Return ``True`` for pool-like handles (``connection()`` but no ``cursor()``)."""
    return callable(getattr(handle, "connection", None)) and not hasattr(handle, "cursor")


@contextmanager
def acquire(handle: Any) -> Iterator[Any]:
    """Yield a connection: ``handle`` itself, or one borrowed from a pool."""
    if is_pool(handle):
        with handle.connection() as conn:
            yield conn
    else:
        yield handle


@contextmanager
def driver_errors(sql: str | None) -> Iterator[None]:
    """Re-raise driver exceptions as :class:`ConnectionFailure`."""
    try:
        yield
    except BrickORMError:
        raise
    except Exception as exc:
        raise ConnectionFailure(f"{type(exc).__name__}: {exc}", sql=sql) from exc


def open_cursor(conn: Any, dialect: str | None = None) -> Any:
    """Open a cursor accepting the dialect's placeholder style.

    psycopg's default cursors use ``%s``; ``$n`` statements need its
    ``RawCursor``.  mysql-connector only substitutes ``?`` in prepared
    cursors.
    """
    with driver_errors(None):
        if dialect == "postgres" and type(conn).__module__.startswith("psycopg"):
            import psycopg

            return psycopg.RawCursor(conn)
        if dialect == "mysql" and type(conn).__module__.startswith("mysql.connector"):
            return conn.cursor(prepared=True)
        return conn.cursor()


def run(cursor: Any, sql: str, args: Sequence[Any] = ()) -> Any:
    """Execute ``sql`` on ``cursor`` and return the cursor."""
    logger.debug("execute: %s %r", sql, tuple(args))
    with driver_errors(sql):
        cursor.execute(sql, tuple(args))
    return cursor


def execute(handle: Any, sql: str, args: Sequence[Any] = (), dialect: str | None = None) -> int:
    """Execute a statement that returns no rows; return the affected row count."""
    with acquire(handle) as conn:
        cursor = open_cursor(conn, dialect)
        try:
            run(cursor, sql, args)
            return cursor.rowcount
        finally:
            cursor.close()


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def column_names(cursor: Any) -> list[str]:
    """Return the decoded output names of the cursor's result columns."""
    return [output_name(d[0]) for d in cursor.description or ()]


def make_decoder(output: Any) -> Decoder:
    """Return a function turning a ``{name: value}`` row into ``output``.

    ``output`` may be a pydantic model class, ``dict``, ``tuple`` or any type
    pydantic can validate a mapping into (dataclasses, ``TypedDict``, ...).
    """
    if output is dict:
        return dict
    if output is tuple:
        return lambda row: tuple(row.values())
    if isinstance(output, type) and issubclass(output, BaseModel):
        return output.model_validate
    return TypeAdapter(output).validate_python


def decode(decoder: Decoder, names: Sequence[str], row: Sequence[Any], sql: str | None = None) -> Any:
    """Apply ``decoder`` to one raw row."""
    return decode_mapping(decoder, dict(zip(names, row)), sql)


def decode_mapping(decoder: Decoder, data: Mapping[str, Any], sql: str | None = None) -> Any:
    try:
        return decoder(data)
    except ValidationError as exc:
        raise DecodeFailureError(f"cannot decode row: {exc}", sql=sql) from exc


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


def stream(
    handle: Any,
    sql: str,
    args: Sequence[Any],
    decoder: Decoder,
    dialect: str | None = None,
    batch_size: int | None = None,
) -> Iterator[Any]:
    """Lazily yield decoded rows, ``batch_size`` rows per round trip."""
    batch_size = batch_size or get_settings().stream_batch_size
    with acquire(handle) as conn:
        cursor = open_cursor(conn, dialect)
        try:
            run(cursor, sql, args)
            names = column_names(cursor)
            while True:
                with driver_errors(sql):
                    rows = cursor.fetchmany(batch_size)
                if not rows:
                    break
                for row in rows:
                    yield decode(decoder, names, row, sql)
        finally:
            cursor.close()


def fetch_all(
    handle: Any,
    sql: str,
    args: Sequence[Any],
    decoder: Decoder,
    dialect: str | None = None,
) -> list[Any]:
    """Return every decoded row."""
    with acquire(handle) as conn:
        cursor = open_cursor(conn, dialect)
        try:
            run(cursor, sql, args)
            names = column_names(cursor)
            with driver_errors(sql):
                rows = cursor.fetchall()
        finally:
            cursor.close()
    return [decode(decoder, names, row, sql) for row in rows]


def fetch_optional(
    handle: Any,
    sql: str,
    args: Sequence[Any],
    decoder: Decoder,
    dialect: str | None = None,
) -> Any | None:
    """Return the single decoded row, or ``None``.

    Raises:
        MultipleRowsError: If more than one row matched.
    """
    with acquire(handle) as conn:
        cursor = open_cursor(conn, dialect)
        try:
            run(cursor, sql, args)
            names = column_names(cursor)
            with driver_errors(sql):
                rows = cursor.fetchmany(2)
        finally:
            cursor.close()
    if len(rows) > 1:
        raise MultipleRowsError("query returned more than one row", sql=sql)
    if not rows:
        return None
    return decode(decoder, names, rows[0], sql)


def fetch_one(
    handle: Any,
    sql: str,
    args: Sequence[Any],
    decoder: Decoder,
    dialect: str | None = None,
) -> Any:
    """Return the single decoded row.

    Raises:
        RowNotFoundError: If no row matched.
        MultipleRowsError: If more than one row matched.
    """
    result = fetch_optional(handle, sql, args, decoder, dialect)
    if result is None:
        raise RowNotFoundError("query returned no rows", sql=sql)
    return result


def fetch_row(cursor: Any, sql: str) -> dict[str, Any]:
    """Read exactly one raw row from an executed cursor as ``{name: value}``."""
    names = column_names(cursor)
    with driver_errors(sql):
        row = cursor.fetchone()
    if row is None:
        raise RowNotFoundError("query returned no rows", sql=sql)
    return dict(zip(names, row))
