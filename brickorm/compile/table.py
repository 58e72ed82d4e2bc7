"""CRUD generation: TableSchema → CompiledTable.

``TableCompiler`` is the top-level orchestrator for one table.  All
dialect-specific behaviour (quoting, placeholder numbering, insert strategy,
set membership) is delegated to the injected
:class:`~brickorm.compile.base.Backend`; lookups are delegated to
:class:`~brickorm.compile.getters.GetterCompiler`.

Emitted statements
------------------
get          ``SELECT <cols> FROM <t> WHERE <id> = <ph>``
all          ``SELECT <cols> FROM <t>``
paginated    ``SELECT <cols> FROM <t> LIMIT <ph> OFFSET <ph>``
update       ``UPDATE <t> SET <c> = <ph>, ... WHERE <id> = <ph>``
delete       ``DELETE FROM <t> WHERE <id> = <ph>``
setter       ``UPDATE <t> SET <c> = <ph> WHERE <id> = <ph>``
insert       ``INSERT INTO <t> (<cols>) VALUES (<phs>) [RETURNING ...]``

Insert strategy
---------------
Returning-capable backends read the identifier and every default-generated
column back from the ``RETURNING`` clause.  Other backends run, inside one
unit of work, the backend's last-insert-id query (only when the identifier is
default-generated) and a follow-up ``SELECT`` of the remaining
default-generated columns.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from brickorm.compile.base import Backend, CompiledStatement
from brickorm.compile.columns import assignments, column_list
from brickorm.compile.getters import CompiledGetter, GetterCompiler
from brickorm.errors import CompilationError
from brickorm.schema.model import TableSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledInsert:
    """Statements making up one insert.

    Attributes:
        statement: The ``INSERT``; binds the insert fields in order.
        returning: Whether ``statement`` yields a row (``RETURNING``).
        returned_fields: Field names read back, in select-list order.  With
            ``RETURNING`` this is the identifier followed by the defaults;
            otherwise the defaults fetched by ``fetch_defaults``.
        last_insert_id: Query for the generated identifier, if needed.
        fetch_defaults: ``SELECT`` of default columns by ``$id``, if needed.
    """

    statement: CompiledStatement
    returning: bool
    returned_fields: tuple[str, ...] = ()
    last_insert_id: CompiledStatement | None = None
    fetch_defaults: CompiledStatement | None = None

    @property
    def statements(self) -> tuple[CompiledStatement, ...]:
        return tuple(
            s for s in (self.statement, self.last_insert_id, self.fetch_defaults)
            if s is not None
        )


@dataclass(frozen=True)
class CompiledSetter:
    """A single-column ``UPDATE`` binding ``$value`` then ``$id``."""

    function_name: str
    field_name: str
    statement: CompiledStatement


@dataclass(frozen=True)
class CompiledTable:
    """Every statement generated for one table."""

    schema: TableSchema
    columns: str
    get: CompiledStatement
    all: CompiledStatement
    paginated: CompiledStatement
    update: CompiledStatement | None
    delete: CompiledStatement | None = None
    insert: CompiledInsert | None = None
    setters: tuple[CompiledSetter, ...] = ()
    getters: tuple[CompiledGetter, ...] = field(default=())

    @property
    def dialect(self) -> str:
        return self.get.dialect


class TableCompiler:
    """Compiles a :class:`TableSchema` into a :class:`CompiledTable`.

    Args:
        backend: Backend the statements are rendered for.
        getter_compiler: Optional override for lookup generation.
    """

    def __init__(
        self,
        backend: Backend,
        getter_compiler: GetterCompiler | None = None,
    ) -> None:
        self._backend = backend
        self._getters = getter_compiler or GetterCompiler(backend)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compile(self, schema: TableSchema) -> CompiledTable:
        """Lower ``schema``.

        Raises:
            CompilationError: If the backend cannot express an insert.
        """
        columns = column_list(self._backend, schema.fields)
        compiled = CompiledTable(
            schema=schema,
            columns=columns,
            get=self._get(schema, columns),
            all=self._all(schema, columns),
            paginated=self._paginated(schema, columns),
            update=self._update(schema),
            delete=self._delete(schema) if schema.deletable else None,
            insert=self._insert(schema) if schema.insertable else None,
            setters=self._setters(schema),
            getters=self._getters.compile(schema),
        )
        if logger.isEnabledFor(logging.DEBUG):
            for name in ("get", "all", "paginated", "update", "delete"):
                stmt = getattr(compiled, name)
                if stmt is not None:
                    logger.debug("%s.%s: %s", schema.entity_name, name, stmt.sql)
            if compiled.insert is not None:
                for stmt in compiled.insert.statements:
                    logger.debug("%s.insert: %s", schema.entity_name, stmt.sql)
        return compiled

    # ------------------------------------------------------------------
    # Statement builders
    # ------------------------------------------------------------------

    def _table(self, schema: TableSchema) -> str:
        return self._backend.quote(schema.table_name)

    def _id_column(self, schema: TableSchema) -> str:
        return self._backend.quote(schema.identifier.column_name)

    def _stmt(self, sql: str, *params: str) -> CompiledStatement:
        return CompiledStatement(sql, params, self._backend.name)

    def _get(self, schema: TableSchema, columns: str) -> CompiledStatement:
        ph = next(self._backend.placeholders())
        return self._stmt(
            f"SELECT {columns} FROM {self._table(schema)} "
            f"WHERE {self._id_column(schema)} = {ph}",
            "$id",
        )

    def _all(self, schema: TableSchema, columns: str) -> CompiledStatement:
        return self._stmt(f"SELECT {columns} FROM {self._table(schema)}")

    def _paginated(self, schema: TableSchema, columns: str) -> CompiledStatement:
        phs = self._backend.placeholders()
        return self._stmt(
            f"SELECT {columns} FROM {self._table(schema)} "
            f"LIMIT {next(phs)} OFFSET {next(phs)}",
            "$limit",
            "$offset",
        )

    def _update(self, schema: TableSchema) -> CompiledStatement | None:
        fields = schema.fields_except_id
        if not fields:
            return None
        phs = self._backend.placeholders()
        sets = assignments(self._backend, (f.column_name for f in fields), phs)
        return self._stmt(
            f"UPDATE {self._table(schema)} SET {sets} "
            f"WHERE {self._id_column(schema)} = {next(phs)}",
            *(f.name for f in fields),
            schema.identifier.name,
        )

    def _delete(self, schema: TableSchema) -> CompiledStatement:
        ph = next(self._backend.placeholders())
        return self._stmt(
            f"DELETE FROM {self._table(schema)} WHERE {self._id_column(schema)} = {ph}",
            "$id",
        )

    def _setters(self, schema: TableSchema) -> tuple[CompiledSetter, ...]:
        setters = []
        for f in schema.fields:
            if f.setter_name is None:
                continue
            phs = self._backend.placeholders()
            sets = assignments(self._backend, [f.column_name], phs)
            sql = (
                f"UPDATE {self._table(schema)} SET {sets} "
                f"WHERE {self._id_column(schema)} = {next(phs)}"
            )
            setters.append(
                CompiledSetter(
                    function_name=schema.accessor_name(f.setter_name),
                    field_name=f.name,
                    statement=self._stmt(sql, "$value", "$id"),
                )
            )
        return tuple(setters)

    def _insert(self, schema: TableSchema) -> CompiledInsert:
        b = self._backend
        insert_fields = schema.insert_fields
        phs = b.placeholders()
        if insert_fields:
            cols = ", ".join(b.quote(f.column_name) for f in insert_fields)
            values = ", ".join(next(phs) for _ in insert_fields)
            sql = f"INSERT INTO {self._table(schema)} ({cols}) VALUES ({values})"
        else:
            sql = f"INSERT INTO {self._table(schema)} DEFAULT VALUES"
        params = tuple(f.name for f in insert_fields)

        identifier = schema.identifier
        defaults = tuple(f for f in schema.default_fields if not f.is_identifier)

        if b.supports_returning:
            returned = (identifier, *defaults)
            return CompiledInsert(
                statement=self._stmt(
                    f"{sql} RETURNING {column_list(b, returned)}", *params
                ),
                returning=True,
                returned_fields=tuple(f.name for f in returned),
            )

        last_insert_id = None
        if identifier.is_default_generated:
            if b.last_insert_id_sql is None:
                raise CompilationError(
                    f"{schema.entity_name}: backend '{b.name}' can neither return "
                    "nor query a generated identifier",
                    "insert",
                )
            last_insert_id = self._stmt(b.last_insert_id_sql)

        fetch_defaults = None
        if defaults:
            ph = next(b.placeholders())
            fetch_defaults = self._stmt(
                f"SELECT {column_list(b, defaults)} FROM {self._table(schema)} "
                f"WHERE {self._id_column(schema)} = {ph}",
                "$id",
            )

        return CompiledInsert(
            statement=self._stmt(sql, *params),
            returning=False,
            returned_fields=tuple(f.name for f in defaults),
            last_insert_id=last_insert_id,
            fetch_defaults=fetch_defaults,
        )


def compile_table(schema: TableSchema, backend: Backend) -> CompiledTable:
    """Shorthand for ``TableCompiler(backend).compile(schema)``."""
    return TableCompiler(backend).compile(schema)
