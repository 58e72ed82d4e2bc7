"""brickORM compilation layer: TableSchema / PatchSchema → SQL statements."""
from brickorm.compile.base import Backend, CompiledStatement
from brickorm.compile.getters import CompiledGetter, GetterCompiler
from brickorm.compile.mysql import MySQLBackend
from brickorm.compile.patch import CompiledPatch, PatchCompiler
from brickorm.compile.postgres import PostgresBackend
from brickorm.compile.registry import BackendFactory, resolve_backend
from brickorm.compile.sqlite import SQLiteBackend
from brickorm.compile.table import (
    CompiledInsert,
    CompiledSetter,
    CompiledTable,
    TableCompiler,
    compile_table,
)

__all__ = [
    "Backend",
    "BackendFactory",
    "CompiledGetter",
    "CompiledInsert",
    "CompiledPatch",
    "CompiledSetter",
    "CompiledStatement",
    "CompiledTable",
    "GetterCompiler",
    "MySQLBackend",
    "PatchCompiler",
    "PostgresBackend",
    "SQLiteBackend",
    "TableCompiler",
    "compile_table",
    "resolve_backend",
]
