"""Patch (partial update) generation."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from brickorm.compile.base import Backend, CompiledStatement
from brickorm.compile.columns import assignments
from brickorm.errors import CompilationError
from brickorm.schema.model import PatchSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledPatch:
    """The single ``UPDATE`` emitted for a patch.

    ``statement`` binds every patch field in declaration order, then ``$id``.
    """

    schema: PatchSchema
    statement: CompiledStatement


class PatchCompiler:
    """Lowers a :class:`PatchSchema` for one backend."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    def compile(self, schema: PatchSchema) -> CompiledPatch:
        if not schema.fields:
            raise CompilationError(
                f"{schema.entity_name}: a patch needs at least one field", "patch"
            )
        b = self._backend
        phs = b.placeholders()
        sets = assignments(b, (f.column_name for f in schema.fields), phs)
        sql = (
            f"UPDATE {b.quote(schema.target_table_name)} SET {sets} "
            f"WHERE {b.quote(schema.identifier_column)} = {next(phs)}"
        )
        params = tuple(f.name for f in schema.fields) + ("$id",)
        logger.debug("%s.patch_row: %s", schema.entity_name, sql)
        return CompiledPatch(schema=schema, statement=CompiledStatement(sql, params, b.name))
