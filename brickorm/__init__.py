"""brickORM – Build-time compiled CRUD and conditional queries for pydantic models.

Declare once. Validate at import.

Public API
----------
``Table`` / ``Patch``
    pydantic base classes; subclasses declaring ``__brickorm__ = orm(...)``
    are parsed and compiled when the class is created.

``compile_declaration``
    Parse and compile a raw :class:`TableDeclaration` (hand-written, loaded
    from JSON or reflected from SQLAlchemy) without defining a class.

``ConditionalQuery``
    A query skeleton with optional ``When`` fragments; every variant is
    rendered and checked on construction.

Extensibility
-------------
New backends can be registered via::

    from brickorm.compile.registry import BackendFactory

    @BackendFactory.register("cockroach")
    class CockroachBackend(PostgresBackend):
        ...

After registration, any declaration with ``backend="cockroach"`` (or
``configure(default_backend="cockroach")``) picks it up automatically.
"""

from __future__ import annotations

import logging

from brickorm.compile.base import Backend, CompiledStatement
from brickorm.compile.mysql import MySQLBackend
from brickorm.compile.postgres import PostgresBackend
from brickorm.compile.registry import BackendFactory, resolve_backend
from brickorm.compile.sqlite import SQLiteBackend
from brickorm.compile.table import CompiledTable, TableCompiler
from brickorm.config import CompilerSettings, configure, get_settings, reset_settings
from brickorm.entity import InsertRow, Patch, Table, entity_from_declaration
from brickorm.errors import (
    BranchCapacityExceededError,
    BranchResultShapeMismatchError,
    BrickORMError,
    BuildError,
    CompilationError,
    ConnectionFailure,
    DecodeFailureError,
    DefaultWithoutInsertableError,
    DuplicateAttributeError,
    InvalidAttributeError,
    InvalidSkeletonError,
    MissingAttributeError,
    MultipleRowsError,
    NameCollisionError,
    OperationError,
    QueryCompileError,
    ReservedIdentifierWarning,
    RowNotFoundError,
    SchemaError,
    UnknownAttributeError,
    UnknownIdentifierFieldError,
    UnknownPatchFieldError,
    UnmatchedBranchError,
    UnresolvedPatchTargetError,
)
from brickorm.query import Arg, ConditionalQuery, SelectedBranch, When
from brickorm.schema.converters import declaration_from_sqlalchemy, declarations_from_sqlalchemy
from brickorm.schema.declaration import (
    Attribute,
    FieldDeclaration,
    PatchDeclaration,
    TableDeclaration,
    getter,
    insertable,
    orm,
)
from brickorm.schema.model import TableSchema
from brickorm.schema.parser import parse_patch, parse_table

logging.getLogger(__name__).addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Register built-in backends with BackendFactory
# ---------------------------------------------------------------------------

BackendFactory.register_class("postgres", PostgresBackend)
BackendFactory.register_class("sqlite", SQLiteBackend)
BackendFactory.register_class("mysql", MySQLBackend)

__all__ = [
    # Core pipeline
    "compile_declaration",
    # Entities
    "Table",
    "Patch",
    "InsertRow",
    "entity_from_declaration",
    # Declarations
    "orm",
    "getter",
    "insertable",
    "Attribute",
    "FieldDeclaration",
    "TableDeclaration",
    "PatchDeclaration",
    "TableSchema",
    "parse_table",
    "parse_patch",
    # Converters
    "declaration_from_sqlalchemy",
    "declarations_from_sqlalchemy",
    # Conditional queries
    "ConditionalQuery",
    "SelectedBranch",
    "Arg",
    "When",
    # Compilation
    "Backend",
    "BackendFactory",
    "CompiledStatement",
    "CompiledTable",
    "MySQLBackend",
    "PostgresBackend",
    "SQLiteBackend",
    "TableCompiler",
    "resolve_backend",
    # Configuration
    "CompilerSettings",
    "configure",
    "get_settings",
    "reset_settings",
    # Errors
    "BrickORMError",
    "BuildError",
    "SchemaError",
    "DuplicateAttributeError",
    "MissingAttributeError",
    "UnknownAttributeError",
    "InvalidAttributeError",
    "UnknownIdentifierFieldError",
    "DefaultWithoutInsertableError",
    "NameCollisionError",
    "UnknownPatchFieldError",
    "UnresolvedPatchTargetError",
    "QueryCompileError",
    "BranchCapacityExceededError",
    "BranchResultShapeMismatchError",
    "InvalidSkeletonError",
    "CompilationError",
    "OperationError",
    "ConnectionFailure",
    "RowNotFoundError",
    "MultipleRowsError",
    "DecodeFailureError",
    "UnmatchedBranchError",
    "ReservedIdentifierWarning",
]


def compile_declaration(
    decl: TableDeclaration,
    backend: Backend | str | None = None,
) -> CompiledTable:
    """Parse and compile a raw table declaration.

    Example::

        decl = TableDeclaration.model_validate(json.loads(raw))
        compiled = brickorm.compile_declaration(decl, "sqlite")
        cursor.execute(compiled.get.sql, compiled.get.bind(id=7))

    Args:
        decl: The raw declaration.
        backend: Backend instance or name.  A ``backend`` option in the
            declaration takes precedence; ``None`` uses the configured default.

    Returns:
        The :class:`CompiledTable` with every generated statement.

    Raises:
        SchemaError: (or subclass) if the declaration is invalid.
        CompilationError: If the backend is unknown or cannot express it.
    """
    schema = parse_table(decl, backend)
    return TableCompiler(resolve_backend(schema.backend)).compile(schema)
