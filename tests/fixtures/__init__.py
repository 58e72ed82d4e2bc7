"""Test fixtures: sample DDL, JSON declarations and a recording DB-API fake."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from brickorm.schema.declaration import TableDeclaration

_FIXTURES_DIR = Path(__file__).parent


def load_declaration(name: str = "users") -> TableDeclaration:
    """Load a raw table declaration from ``<name>.json``."""
    data = json.loads((_FIXTURES_DIR / f"{name}.json").read_text())
    return TableDeclaration.model_validate(data)


def load_ddl(target: Literal["sqlite", "postgres"] = "sqlite") -> str:
    """Return the sample DDL SQL string for the given backend.

    Args:
        target: ``'sqlite'`` (default) or ``'postgres'``.

    Returns:
        DDL string ready to execute against the target backend.
    """
    filename = f"ddl_{target}.sql"
    return (_FIXTURES_DIR / filename).read_text()


# ---------------------------------------------------------------------------
# Recording DB-API fake
# ---------------------------------------------------------------------------


@dataclass
class Result:
    """Canned result for one ``execute`` call."""

    columns: Sequence[str] = ()
    rows: Sequence[Sequence[Any]] = ()
    rowcount: int = 1
    error: Exception | None = None


class RecordingCursor:
    def __init__(self, conn: RecordingConnection) -> None:
        self._conn = conn
        self._rows: list[Sequence[Any]] = []
        self.description: list[tuple[Any, ...]] | None = None
        self.rowcount = -1
        self.closed = False

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        self._conn.executed.append((sql, tuple(params)))
        result = self._conn.respond(sql, tuple(params))
        if result.error is not None:
            raise result.error
        self.description = [(c, None, None, None, None, None, None) for c in result.columns] or None
        self._rows = list(result.rows)
        self.rowcount = result.rowcount

    def fetchone(self) -> Sequence[Any] | None:
        return self._rows.pop(0) if self._rows else None

    def fetchmany(self, size: int = 1) -> list[Sequence[Any]]:
        batch, self._rows = self._rows[:size], self._rows[size:]
        return batch

    def fetchall(self) -> list[Sequence[Any]]:
        rows, self._rows = self._rows, []
        return rows

    def close(self) -> None:
        self.closed = True


@dataclass
class RecordingConnection:
    """A PEP 249 connection that records statements and replays canned results.

    ``responder`` maps ``(sql, params)`` to a :class:`Result`; the default
    returns an empty result with one affected row.
    """

    responder: Callable[[str, tuple[Any, ...]], Result] | None = None
    autocommit: bool = False
    in_transaction: bool = False
    executed: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    commits: int = 0
    rollbacks: int = 0
    cursors: list[RecordingCursor] = field(default_factory=list)
    cursor_options: list[dict[str, Any]] = field(default_factory=list)

    def respond(self, sql: str, params: tuple[Any, ...]) -> Result:
        if self.responder is None:
            return Result()
        return self.responder(sql, params)

    def cursor(self, **options: Any) -> RecordingCursor:
        cur = RecordingCursor(self)
        self.cursor_options.append(options)
        self.cursors.append(cur)
        return cur

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]
