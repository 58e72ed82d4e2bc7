"""Lookup (getter) generation.

Every declared lookup shares the table column list and differs only in its
``WHERE`` predicate and in how many rows the caller expects.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from brickorm.compile.base import Backend, CompiledStatement
from brickorm.compile.columns import column_list
from brickorm.schema.model import TableSchema

logger = logging.getLogger(__name__)

LookupKind = Literal["one", "optional", "many", "any_of"]


@dataclass(frozen=True)
class CompiledGetter:
    """One generated lookup.

    Attributes:
        kind: ``one`` | ``optional`` | ``many`` | ``any_of``.
        function_name: Accessor name attached to the entity class.
        field_name: The field the lookup filters on.
        statement: The ``SELECT`` statement, binding ``$by``.
        argument_type: Declared argument type, or ``None`` to skip validation.
    """

    kind: LookupKind
    function_name: str
    field_name: str
    statement: CompiledStatement
    argument_type: Any = None


class GetterCompiler:
    """Lowers the lookups of a :class:`TableSchema` for one backend."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    def compile(self, schema: TableSchema) -> tuple[CompiledGetter, ...]:
        """Return every declared lookup, in field then kind order."""
        b = self._backend
        columns = column_list(b, schema.fields)
        table = b.quote(schema.table_name)
        getters: list[CompiledGetter] = []

        for field in schema.fields:
            column = b.quote(field.column_name)
            for kind, spec in field.lookups.declared():
                ph = next(b.placeholders())
                if kind == "any_of":
                    predicate = b.any_of(column, ph)
                else:
                    predicate = f"{column} = {ph}"
                sql = f"SELECT {columns} FROM {table} WHERE {predicate}"
                getters.append(
                    CompiledGetter(
                        kind=kind,
                        function_name=schema.accessor_name(spec.function_name),
                        field_name=field.name,
                        statement=CompiledStatement(sql, ("$by",), b.name),
                        argument_type=spec.argument_type,
                    )
                )
                logger.debug("%s.%s: %s", schema.entity_name, spec.function_name, sql)
        return tuple(getters)
