"""Entity surface: ``Table``, ``Patch`` and generated insert models.

Declaring a subclass compiles it::

    class User(Table):
        __brickorm__ = orm(table="users", id="user_id", insertable=True, deletable=True)

        user_id: Annotated[int, orm(column="id", default=True)]
        first_name: Annotated[str, orm(set=True)]
        email: Annotated[str, orm(get_optional=True)]

    new = User.Insert(first_name="Ada", email="ada@example.com").insert(conn)
    same = User.get(conn, new.user_id)
    found = User.by_email(conn, "ada@example.com")
    same.set_first_name(conn, "Augusta")

Compilation runs from ``__pydantic_init_subclass__``, once the pydantic
fields are known.  The declaration is parsed and every statement compiled
before anything is attached to the class, so a class that fails to compile
raises and leaves nothing behind.  Classes without their own ``__brickorm__``
(abstract bases, generic parametrisations) are left alone.
"""
from __future__ import annotations

import copy
import datetime
import decimal
import importlib
import logging
import sys
import uuid
from collections.abc import Iterator
from typing import Annotated, Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from brickorm.compile.base import Backend
from brickorm.compile.getters import CompiledGetter
from brickorm.compile.patch import CompiledPatch, PatchCompiler
from brickorm.compile.registry import resolve_backend
from brickorm.compile.table import CompiledSetter, CompiledTable, TableCompiler
from brickorm.errors import (
    InvalidAttributeError,
    NameCollisionError,
    RowNotFoundError,
    UnresolvedPatchTargetError,
)
from brickorm.runtime import executor
from brickorm.runtime.transaction import unit_of_work
from brickorm.schema.declaration import (
    FieldDeclaration,
    OrmOptions,
    PatchDeclaration,
    StructDeclaration,
    TableDeclaration,
    collect_attributes,
)
from brickorm.schema.model import PatchSchema, TableSchema
from brickorm.schema.parser import entity_path, parse_patch, parse_table

logger = logging.getLogger(__name__)

_GENERATED = "__brickorm_generated__"


# ---------------------------------------------------------------------------
# Declaration collection
# ---------------------------------------------------------------------------


def _struct_markers(cls: type) -> list[OrmOptions]:
    raw = cls.__dict__["__brickorm__"]
    markers = list(raw) if isinstance(raw, (tuple, list)) else [raw]
    for marker in markers:
        if not isinstance(marker, OrmOptions):
            raise InvalidAttributeError(
                "__brickorm__", raw, "orm(...) or a tuple of orm(...)", cls.__name__
            )
    return markers


def _declaration(cls: type[BaseModel], kind: type[StructDeclaration]) -> StructDeclaration:
    """Collect the raw declaration of a pydantic class from its ``orm`` markers."""
    return kind(
        name=cls.__name__,
        attributes=collect_attributes(_struct_markers(cls)),
        fields=[
            FieldDeclaration(
                name=name,
                type=info.annotation,
                attributes=collect_attributes(info.metadata),
            )
            for name, info in cls.model_fields.items()
        ],
    )


def _check_free(cls: type, names: list[str]) -> None:
    """Raise if a generated name shadows a field or a non-generated attribute."""
    for name in names:
        if name in cls.model_fields:
            raise NameCollisionError(name, cls.__name__)
        for klass in cls.__mro__:
            if name in klass.__dict__:
                existing = klass.__dict__[name]
                func = getattr(existing, "__func__", existing)
                if not getattr(func, _GENERATED, False):
                    raise NameCollisionError(name, cls.__name__)
                break


def _generated(func: Any, owner: type, name: str, doc: str) -> Any:
    func.__name__ = name
    func.__qualname__ = f"{owner.__qualname__}.{name}"
    func.__doc__ = doc
    setattr(func, _GENERATED, True)
    return func


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class InsertRow(BaseModel):
    """Base of generated insert models (``Entity.Insert``).

    Holds every field of the entity that is not default-generated.
    """

    __entity__: ClassVar[type[Table]]

    def insert(self, handle: Any) -> Table:
        """Insert this row and return the fully populated entity.

        Multi-statement inserts run in one unit of work.

        Raises:
            ConnectionFailure: If the driver fails.
            DecodeFailureError: If the returned values do not fit the entity.
        """
        entity_cls = type(self).__entity__
        compiled = entity_cls.__compiled__.insert
        backend = entity_cls.__backend__
        values = {name: getattr(self, name) for name in type(self).model_fields}

        with executor.acquire(handle) as conn:
            if compiled.returning:
                generated = _insert_returning(conn, self, compiled, backend)
            else:
                with unit_of_work(conn, backend.begin_sql):
                    generated = _insert_then_fetch(conn, self, compiled, entity_cls)

        logger.debug("inserted %s: %r", entity_cls.__name__, generated)
        return executor.decode_mapping(
            entity_cls.model_validate, {**values, **generated}, compiled.statement.sql
        )


def _insert_returning(conn: Any, row: InsertRow, compiled: Any, backend: Backend) -> dict[str, Any]:
    stmt = compiled.statement
    cursor = executor.open_cursor(conn, backend.name)
    try:
        executor.run(cursor, stmt.sql, stmt.bind(row))
        return executor.fetch_row(cursor, stmt.sql)
    finally:
        cursor.close()


def _insert_then_fetch(
    conn: Any, row: InsertRow, compiled: Any, entity_cls: type[Table]
) -> dict[str, Any]:
    id_name = entity_cls.__schema__.identifier.name
    generated: dict[str, Any] = {}
    cursor = executor.open_cursor(conn, entity_cls.__backend__.name)
    try:
        executor.run(cursor, compiled.statement.sql, compiled.statement.bind(row))
        if compiled.last_insert_id is not None:
            sql = compiled.last_insert_id.sql
            executor.run(cursor, sql)
            with executor.driver_errors(sql):
                result = cursor.fetchone()
            generated[id_name] = result[0]
        if compiled.fetch_defaults is not None:
            stmt = compiled.fetch_defaults
            row_id = generated.get(id_name, getattr(row, id_name, None))
            executor.run(cursor, stmt.sql, stmt.bind(id=row_id))
            generated.update(executor.fetch_row(cursor, stmt.sql))
    finally:
        cursor.close()
    return generated


class Table(BaseModel):
    """Base class of table entities.

    Subclasses declare ``__brickorm__ = orm(table=..., id=..., ...)`` and
    field options through ``Annotated[T, orm(...)]``.  Compiled state lives
    in ``__schema__``, ``__compiled__`` and ``__backend__``.
    """

    __schema__: ClassVar[TableSchema]
    __compiled__: ClassVar[CompiledTable]
    __backend__: ClassVar[Backend]

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        if "__brickorm__" not in cls.__dict__:
            return
        decl = _declaration(cls, TableDeclaration)
        schema = parse_table(decl)
        backend = resolve_backend(schema.backend)
        compiled = TableCompiler(backend).compile(schema)

        members: dict[str, Any] = {}
        for g in compiled.getters:
            members[g.function_name] = _make_getter(cls, g)
        for s in compiled.setters:
            members[s.function_name] = _make_setter(cls, s)
        if compiled.delete is not None:
            members["delete_row"] = _make_delete_row(cls)
            members["delete"] = _make_delete(cls)
        if compiled.insert is not None:
            members["Insert"] = _make_insert_model(cls, schema)

        _check_free(cls, list(members))

        cls.__schema__ = schema
        cls.__compiled__ = compiled
        cls.__backend__ = backend
        for name, member in members.items():
            setattr(cls, name, member)
        logger.debug(
            "compiled %s for %s: %s", cls.__qualname__, backend.name, sorted(members)
        )

    # ------------------------------------------------------------------
    # Generic operations
    # ------------------------------------------------------------------

    @classmethod
    def _dialect(cls) -> str:
        return cls.__backend__.name

    def _id(self) -> Any:
        return getattr(self, type(self).__schema__.identifier.name)

    @classmethod
    def get(cls, handle: Any, id: Any) -> Table:
        """Fetch the row with identifier ``id``.

        Raises:
            RowNotFoundError: If there is no such row.
        """
        stmt = cls.__compiled__.get
        return executor.fetch_one(
            handle, stmt.sql, stmt.bind(id=id), cls.model_validate, cls._dialect()
        )

    @classmethod
    def stream_all(cls, handle: Any) -> Iterator[Table]:
        """Lazily yield every row of the table."""
        stmt = cls.__compiled__.all
        return executor.stream(handle, stmt.sql, (), cls.model_validate, cls._dialect())

    @classmethod
    def all(cls, handle: Any) -> list[Table]:
        """Return every row of the table."""
        return list(cls.stream_all(handle))

    @classmethod
    def stream_paginated(cls, handle: Any, offset: int, limit: int) -> Iterator[Table]:
        """Lazily yield at most ``limit`` rows, skipping the first ``offset``."""
        stmt = cls.__compiled__.paginated
        return executor.stream(
            handle,
            stmt.sql,
            stmt.bind(limit=limit, offset=offset),
            cls.model_validate,
            cls._dialect(),
        )

    def update(self, handle: Any) -> None:
        """Write every non-identifier field of this entity to its row."""
        stmt = type(self).__compiled__.update
        if stmt is None:
            return
        executor.execute(handle, stmt.sql, stmt.bind(self), type(self)._dialect())

    def reload(self, handle: Any) -> None:
        """Re-fetch this entity's row and overwrite every field in place."""
        fresh = type(self).get(handle, self._id())
        for name in type(self).model_fields:
            setattr(self, name, getattr(fresh, name))

    def patch(self, handle: Any, patch: Patch) -> None:
        """Persist ``patch`` for this entity's row, then apply it in memory.

        Nothing is applied if persisting fails.
        """
        if not patch.targets(type(self)):
            raise TypeError(
                f"{type(patch).__name__} does not patch {type(self).__name__}"
            )
        compiled_for = type(patch).compiled().statement.dialect
        if compiled_for != type(self).__backend__.name:
            raise TypeError(
                f"{type(patch).__name__} is compiled for {compiled_for}, "
                f"{type(self).__name__} uses {type(self).__backend__.name}"
            )
        patch.patch_row(handle, self._id())
        patch.apply_to(self)


def _make_getter(owner: type[Table], g: CompiledGetter) -> classmethod:
    fetchers = {
        "one": executor.fetch_one,
        "optional": executor.fetch_optional,
        "many": executor.fetch_all,
        "any_of": executor.fetch_all,
    }
    fetch = fetchers[g.kind]
    adapter = TypeAdapter(g.argument_type) if g.argument_type is not None else None

    def lookup(cls, handle, by):
        value = adapter.validate_python(by) if adapter is not None else by
        if g.kind == "any_of":
            value = cls.__backend__.bind_array(value)
        return fetch(
            handle,
            g.statement.sql,
            g.statement.bind(by=value),
            cls.model_validate,
            cls.__backend__.name,
        )

    doc = f"Look up {owner.__name__} rows by ``{g.field_name}`` ({g.kind})."
    return classmethod(_generated(lookup, owner, g.function_name, doc))


def _make_setter(owner: type[Table], s: CompiledSetter) -> Any:
    adapter = TypeAdapter(owner.model_fields[s.field_name].annotation)

    def setter(self, handle, value):
        value = adapter.validate_python(value)
        stmt = s.statement
        executor.execute(
            handle, stmt.sql, stmt.bind(value=value, id=self._id()), type(self)._dialect()
        )
        setattr(self, s.field_name, value)

    doc = f"Persist a new ``{s.field_name}``, then assign it."
    return _generated(setter, owner, s.function_name, doc)


def _delete_by_id(cls: type[Table], handle: Any, id: Any) -> None:
    stmt = cls.__compiled__.delete
    count = executor.execute(handle, stmt.sql, stmt.bind(id=id), cls._dialect())
    if count == 0:
        raise RowNotFoundError(
            f"no {cls.__name__} row with identifier {id!r}", sql=stmt.sql
        )


def _make_delete_row(owner: type[Table]) -> classmethod:
    def delete_row(cls, handle, id):
        _delete_by_id(cls, handle, id)

    doc = "Delete the row with identifier ``id`` (``RowNotFoundError`` if absent)."
    return classmethod(_generated(delete_row, owner, "delete_row", doc))


def _make_delete(owner: type[Table]) -> Any:
    def delete(self, handle):
        _delete_by_id(type(self), handle, self._id())

    doc = "Delete this entity's row (``RowNotFoundError`` if absent)."
    return _generated(delete, owner, "delete", doc)


def _make_insert_model(owner: type[Table], schema: TableSchema) -> type[InsertRow]:
    spec = schema.insertable
    namespace: dict[str, Any] = {
        "__module__": owner.__module__,
        "__qualname__": spec.generated_struct_name,
        "__doc__": f"A new {owner.__name__} row, without default-generated fields.",
        "__annotations__": {},
        "model_config": ConfigDict(**spec.carried_annotations),
    }
    for f in schema.insert_fields:
        info = owner.model_fields[f.name]
        namespace["__annotations__"][f.name] = info.annotation
        namespace[f.name] = copy.copy(info)
    model = type(InsertRow)(spec.generated_struct_name, (InsertRow,), namespace)
    model.__entity__ = owner
    setattr(model, _GENERATED, True)
    return model


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


class Patch(BaseModel):
    """Base class of patches: a subset of an entity's fields.

    Subclasses declare ``__brickorm__ = orm(table_name=..., table=Entity,
    id=...)``.  ``table`` may also be a dotted path; when that path does not
    resolve yet (the entity is defined later, or in a module not imported yet)
    the patch compiles on first use.
    """

    __patch_declaration__: ClassVar[PatchDeclaration]
    __target_path__: ClassVar[str]
    __patch_schema__: ClassVar[PatchSchema]
    __compiled__: ClassVar[CompiledPatch]
    __backend__: ClassVar[Backend]

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        if "__brickorm__" not in cls.__dict__:
            return
        decl = _declaration(cls, PatchDeclaration)
        target = _target_option(decl)
        cls.__patch_declaration__ = decl
        cls.__target_path__ = entity_path(target) if target is not None else ""
        if isinstance(target, str):
            target = _lookup_entity(target)
            if target is None:
                logger.debug(
                    "patch %s: deferred until %s is defined", cls.__qualname__, cls.__target_path__
                )
                return
        cls._compile(target)

    @classmethod
    def _compile(cls, target: Any) -> None:
        target_schema = getattr(target, "__schema__", None) if isinstance(target, type) else None
        schema = parse_patch(cls.__patch_declaration__, target_schema=target_schema)
        backend = resolve_backend(schema.backend)
        compiled = PatchCompiler(backend).compile(schema)

        cls.__patch_schema__ = schema
        cls.__compiled__ = compiled
        cls.__backend__ = backend
        logger.debug("compiled patch %s: %s", cls.__qualname__, compiled.statement.sql)

    @classmethod
    def compiled(cls) -> CompiledPatch:
        """Return the compiled statement, compiling a deferred patch first.

        Raises:
            UnresolvedPatchTargetError: if the dotted target still does not
                name a class.
        """
        if getattr(cls, "__compiled__", None) is None:
            target = _import_entity(cls.__target_path__)
            if target is None:
                raise UnresolvedPatchTargetError(cls.__target_path__, cls.__name__)
            cls._compile(target)
        return cls.__compiled__

    @classmethod
    def targets(cls, entity_cls: type) -> bool:
        """Return ``True`` if this patch applies to ``entity_cls``."""
        return any(entity_path(k) == cls.__target_path__ for k in entity_cls.__mro__)

    def patch_row(self, handle: Any, id: Any) -> None:
        """Write the patch fields to the row with identifier ``id``."""
        stmt = type(self).compiled().statement
        executor.execute(handle, stmt.sql, stmt.bind(self, id=id), type(self).__backend__.name)

    def apply_to(self, entity: Table) -> None:
        """Copy the patch values onto ``entity`` (by reference for ``by_ref`` fields)."""
        type(self).compiled()
        for f in type(self).__patch_schema__.fields:
            value = getattr(self, f.name)
            setattr(entity, f.name, value if f.pass_by_reference else copy.copy(value))


def _target_option(decl: PatchDeclaration) -> Any:
    for attr in decl.attributes:
        if attr.key == "table":
            return attr.value
    return None


def _walk(obj: Any, names: list[str]) -> type | None:
    for name in names:
        obj = getattr(obj, name, None)
        if obj is None:
            return None
    return obj if isinstance(obj, type) else None


def _lookup_entity(path: str) -> type | None:
    """Resolve ``path`` against modules that are already imported."""
    parts = path.split(".")
    for i in range(len(parts) - 1, 0, -1):
        module = sys.modules.get(".".join(parts[:i]))
        if module is not None:
            return _walk(module, parts[i:])
    return None


def _import_entity(path: str) -> type | None:
    """Like :func:`_lookup_entity`, importing the longest module prefix that exists."""
    found = _lookup_entity(path)
    if found is not None:
        return found
    parts = path.split(".")
    for i in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:i])
        try:
            module = importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            if exc.name is None or not f"{module_name}.".startswith(f"{exc.name}."):
                raise
            continue
        return _walk(module, parts[i:])
    return None


# ---------------------------------------------------------------------------
# Dynamic entities
# ---------------------------------------------------------------------------

_TYPE_NAMES: dict[str, Any] = {
    "int": int,
    "integer": int,
    "str": str,
    "text": str,
    "float": float,
    "bool": bool,
    "bytes": bytes,
    "decimal": decimal.Decimal,
    "datetime": datetime.datetime,
    "date": datetime.date,
    "time": datetime.time,
    "uuid": uuid.UUID,
}


def _resolve_type(tp: Any) -> Any:
    if tp is None:
        return Any
    if isinstance(tp, str):
        name = tp.strip().lower()
        if name.endswith("| none"):
            return Optional[_resolve_type(name[: -len("| none")])]
        return _TYPE_NAMES.get(name, Any)
    return tp


def entity_from_declaration(
    decl: TableDeclaration,
    module: str | None = None,
    base: type[Table] = Table,
) -> type[Table]:
    """Build and compile an entity class from a raw declaration.

    Useful with declarations loaded from JSON or reflected through
    :func:`~brickorm.schema.converters.declaration_from_sqlalchemy`.  Type
    names such as ``"int"`` or ``"datetime"`` are resolved; unknown names
    become ``Any``.  Each field's ``extra`` is passed to ``pydantic.Field``.
    """
    annotations: dict[str, Any] = {}
    namespace: dict[str, Any] = {
        "__module__": module or __name__,
        "__qualname__": decl.name,
        "__annotations__": annotations,
        "__brickorm__": OrmOptions(attributes=tuple(decl.attributes)),
    }
    for f in decl.fields:
        annotations[f.name] = Annotated[
            _resolve_type(f.type), OrmOptions(attributes=tuple(f.attributes))
        ]
        if f.extra:
            namespace[f.name] = Field(**f.extra)
    return type(base)(decl.name, (base,), namespace)
