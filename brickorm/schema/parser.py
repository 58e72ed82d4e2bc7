"""Attribute parser: raw declarations → Schema Model.

``TableParser`` and ``PatchParser`` consume the unordered ``key = value``
attributes of a :class:`~brickorm.schema.declaration.StructDeclaration`,
apply defaults, and raise the first :class:`~brickorm.errors.SchemaError`
found.  They never return a partially valid schema.

Rules
-----
* every recognised key may appear at most once per field or struct;
* ``table`` and ``id`` are mandatory for tables, ``table_name``, ``table``
  and ``id`` for patches;
* ``id`` must name a field of the struct;
* ``default`` fields require ``insertable``;
* reserved field or column names produce a
  :class:`~brickorm.errors.ReservedIdentifierWarning`, not an error.
"""
from __future__ import annotations

import logging
import warnings
from collections.abc import Callable, Sequence
from typing import Any

from brickorm.compile.base import Backend
from brickorm.compile.registry import resolve_backend
from brickorm.config import get_settings
from brickorm.errors import (
    DefaultWithoutInsertableError,
    DuplicateAttributeError,
    InvalidAttributeError,
    MissingAttributeError,
    NameCollisionError,
    ReservedIdentifierWarning,
    UnknownAttributeError,
    UnknownIdentifierFieldError,
    UnknownPatchFieldError,
)
from brickorm.schema.declaration import (
    Attribute,
    FieldDeclaration,
    GetterOption,
    InsertableOption,
    PatchDeclaration,
    TableDeclaration,
)
from brickorm.schema.model import (
    FieldDescriptor,
    InsertSpec,
    LookupSpec,
    LookupSpecs,
    PatchField,
    PatchSchema,
    TableSchema,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

Coerce = Callable[[str, Any, str], Any]


def _string(key: str, value: Any, location: str) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidAttributeError(key, value, "a non-empty string", location)
    return value


def _flag(key: str, value: Any, location: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidAttributeError(key, value, "a boolean flag", location)
    return value


def _optional_name(key: str, value: Any, location: str) -> str | None:
    """``True`` → default name, a string → that name."""
    if value is True:
        return None
    if isinstance(value, str) and value:
        return value
    raise InvalidAttributeError(key, value, "True or a function name", location)


def _getter(key: str, value: Any, location: str) -> GetterOption:
    if value is True:
        return GetterOption()
    if isinstance(value, str) and value:
        return GetterOption(name=value)
    if isinstance(value, GetterOption):
        return value
    if isinstance(value, dict):
        try:
            return GetterOption.model_validate(value)
        except ValueError as exc:
            raise InvalidAttributeError(key, value, "a getter option", location) from exc
    raise InvalidAttributeError(
        key, value, "True, a function name or getter(name, arg_type)", location
    )


def _insertable(key: str, value: Any, location: str) -> InsertableOption:
    if value is True:
        return InsertableOption()
    if isinstance(value, str) and value:
        return InsertableOption(name=value)
    if isinstance(value, InsertableOption):
        return value
    if isinstance(value, dict):
        try:
            return InsertableOption.model_validate(value)
        except ValueError as exc:
            raise InvalidAttributeError(key, value, "an insertable option", location) from exc
    raise InvalidAttributeError(
        key, value, "True, a model name or insertable(name, **config)", location
    )


def _type_path(key: str, value: Any, location: str) -> Any:
    if isinstance(value, type) or (isinstance(value, str) and value):
        return value
    raise InvalidAttributeError(key, value, "an entity class or dotted path", location)


_TABLE_ATTRS: dict[str, Coerce] = {
    "table": _string,
    "id": _string,
    "insertable": _insertable,
    "deletable": _flag,
    "backend": _string,
}

_TABLE_FIELD_ATTRS: dict[str, Coerce] = {
    "column": _string,
    "custom_type": _flag,
    "default": _flag,
    "set": _optional_name,
    "get_one": _getter,
    "get_optional": _getter,
    "get_many": _getter,
    "get_by_any": _getter,
    "by_ref": _flag,
}

_PATCH_ATTRS: dict[str, Coerce] = {
    "table_name": _string,
    "table": _type_path,
    "id": _string,
    "backend": _string,
}

_PATCH_FIELD_ATTRS: dict[str, Coerce] = {
    "column": _string,
    "custom_type": _flag,
    "by_ref": _flag,
}


def collect_once(
    attributes: Sequence[Attribute],
    allowed: dict[str, Coerce],
    location: str,
) -> dict[str, Any]:
    """Coerce ``attributes`` into a dict, rejecting unknown and repeated keys.

    Args:
        attributes: Raw attributes in declaration order.
        allowed: Recognised keys and their coercion functions.
        location: Declaration location used in error messages.

    Returns:
        ``{key: coerced_value}`` for every declared key.

    Raises:
        UnknownAttributeError: For an unrecognised key.
        DuplicateAttributeError: For a key declared twice.
        InvalidAttributeError: For a value of the wrong shape.
    """
    seen: dict[str, Any] = {}
    for attr in attributes:
        coerce = allowed.get(attr.key)
        if coerce is None:
            raise UnknownAttributeError(attr.key, sorted(allowed), location)
        if attr.key in seen:
            raise DuplicateAttributeError(attr.key, location)
        seen[attr.key] = coerce(attr.key, attr.value, location)
    return seen


def entity_path(target: Any) -> str:
    """Return the dotted path of an entity class (or the string unchanged)."""
    if isinstance(target, str):
        return target
    return f"{target.__module__}.{target.__qualname__}"


def _sequence_of(tp: Any) -> Any:
    if tp is None or isinstance(tp, str):
        return None
    return Sequence[tp]


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class TableParser:
    """Builds a :class:`TableSchema` from a :class:`TableDeclaration`.

    Args:
        backend: Backend consulted for reserved words when the declaration
            has no ``backend`` attribute.  ``None`` uses the configured default.
    """

    def __init__(self, backend: Backend | str | None = None) -> None:
        self._backend = backend

    def parse(self, decl: TableDeclaration) -> TableSchema:
        """Validate ``decl`` and return its schema.

        Raises:
            SchemaError: (or subclass) on the first violation found.
        """
        location = decl.name
        opts = collect_once(decl.attributes, _TABLE_ATTRS, location)
        backend = resolve_backend(opts.get("backend", self._backend))

        if "table" not in opts:
            raise MissingAttributeError("table", location)
        if "id" not in opts:
            raise MissingAttributeError("id", location)

        id_name: str = opts["id"]
        if id_name not in decl.field_names:
            raise UnknownIdentifierFieldError(id_name, decl.field_names, location)

        insertable: InsertableOption | None = opts.get("insertable")
        insert_spec = None
        if insertable is not None:
            insert_spec = InsertSpec(
                generated_struct_name=insertable.name or f"Insert{decl.name}",
                carried_annotations=dict(insertable.config),
            )

        fields = tuple(
            self._parse_field(decl, f, id_name, backend) for f in decl.fields
        )

        if insert_spec is None:
            for f in fields:
                if f.is_default_generated:
                    raise DefaultWithoutInsertableError(f.name, location)

        schema = TableSchema(
            entity_name=decl.name,
            visibility="private" if decl.name.startswith("_") else "public",
            table_name=opts["table"],
            identifier=next(f for f in fields if f.is_identifier),
            fields=fields,
            insertable=insert_spec,
            deletable=opts.get("deletable", False),
            backend=backend.name,
        )
        self._check_generated_names(schema)
        logger.debug(
            "Parsed table %s -> %s (%d fields, backend=%s)",
            schema.entity_name, schema.table_name, len(fields), backend.name,
        )
        return schema

    def _parse_field(
        self,
        decl: TableDeclaration,
        field: FieldDeclaration,
        id_name: str,
        backend: Backend,
    ) -> FieldDescriptor:
        location = f"{decl.name}.{field.name}"
        opts = collect_once(field.attributes, _TABLE_FIELD_ATTRS, location)
        column = opts.get("column", field.name)
        reserved = backend.is_reserved(field.name) or backend.is_reserved(column)
        if reserved:
            _warn_reserved(location, field.name if backend.is_reserved(field.name) else column, backend)

        lookups = LookupSpecs(
            one=_lookup(opts.get("get_one"), f"by_{field.name}", field.type),
            optional=_lookup(opts.get("get_optional"), f"by_{field.name}", field.type),
            many=_lookup(opts.get("get_many"), f"by_{field.name}", field.type),
            any_of=_lookup(
                opts.get("get_by_any"),
                f"get_by_any_{field.name}",
                _sequence_of(field.type),
            ),
        )

        setter_name = None
        if "set" in opts:
            setter_name = opts["set"] or f"set_{field.name}"

        return FieldDescriptor(
            name=field.name,
            semantic_type=field.type,
            column_name=column,
            is_identifier=field.name == id_name,
            is_custom_type=opts.get("custom_type", False),
            is_default_generated=opts.get("default", False),
            is_reserved=reserved,
            lookups=lookups,
            setter_name=setter_name,
            pass_by_reference=opts.get("by_ref", False),
            extra_emit_attributes=dict(field.extra),
        )

    @staticmethod
    def _check_generated_names(schema: TableSchema) -> None:
        seen: set[str] = set()
        for f in schema.fields:
            names = [spec.function_name for _, spec in f.lookups.declared()]
            if f.setter_name:
                names.append(f.setter_name)
            for name in names:
                if name in seen:
                    raise NameCollisionError(name, f"{schema.entity_name}.{f.name}")
                seen.add(name)


def _lookup(option: GetterOption | None, default_name: str, default_type: Any) -> LookupSpec | None:
    if option is None:
        return None
    arg_type = option.arg_type if option.arg_type is not None else default_type
    if isinstance(arg_type, str):
        arg_type = None
    return LookupSpec(function_name=option.name or default_name, argument_type=arg_type)


def _warn_reserved(location: str, ident: str, backend: Backend) -> None:
    if not get_settings().warn_reserved_identifiers:
        return
    message = (
        f"{location}: '{ident}' is a reserved keyword of {backend.name}, "
        "you might want to consider choosing a different name."
    )
    logger.warning(message)
    warnings.warn(message, ReservedIdentifierWarning, stacklevel=4)


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


class PatchParser:
    """Builds a :class:`PatchSchema` from a :class:`PatchDeclaration`.

    Args:
        backend: Backend consulted for reserved words when the declaration
            has no ``backend`` attribute and the target has no schema.
    """

    def __init__(self, backend: Backend | str | None = None) -> None:
        self._backend = backend

    def parse(
        self,
        decl: PatchDeclaration,
        target_schema: TableSchema | None = None,
    ) -> PatchSchema:
        """Validate ``decl`` and return its schema.

        Args:
            decl: The raw patch declaration.
            target_schema: Schema of the owning entity, when available.  Every
                patch field must then be one of its non-identifier fields.

        Raises:
            SchemaError: (or subclass) on the first violation found.
        """
        location = decl.name
        opts = collect_once(decl.attributes, _PATCH_ATTRS, location)
        for key in ("table_name", "table", "id"):
            if key not in opts:
                raise MissingAttributeError(key, location)

        default_backend = target_schema.backend if target_schema else self._backend
        backend = resolve_backend(opts.get("backend", default_backend))

        fields = []
        for field in decl.fields:
            field_location = f"{decl.name}.{field.name}"
            fopts = collect_once(field.attributes, _PATCH_FIELD_ATTRS, field_location)
            if target_schema is not None:
                target_field = target_schema.get_field(field.name)
                if target_field is None or target_field.is_identifier:
                    raise UnknownPatchFieldError(
                        field.name, target_schema.entity_name, field_location
                    )
            column = fopts.get("column", field.name)
            reserved = backend.is_reserved(column)
            if reserved:
                _warn_reserved(field_location, column, backend)
            fields.append(
                PatchField(
                    name=field.name,
                    column_name=column,
                    is_custom_type=fopts.get("custom_type", False),
                    is_reserved=reserved,
                    pass_by_reference=fopts.get("by_ref", False),
                )
            )

        schema = PatchSchema(
            entity_name=decl.name,
            target_table_name=opts["table_name"],
            target_entity_path=entity_path(opts["table"]),
            identifier_column=opts["id"],
            fields=tuple(fields),
            backend=backend.name,
        )
        logger.debug(
            "Parsed patch %s -> %s (%d fields)",
            schema.entity_name, schema.target_table_name, len(fields),
        )
        return schema


def parse_table(decl: TableDeclaration, backend: Backend | str | None = None) -> TableSchema:
    """Shorthand for ``TableParser(backend).parse(decl)``."""
    return TableParser(backend).parse(decl)


def parse_patch(
    decl: PatchDeclaration,
    backend: Backend | str | None = None,
    target_schema: TableSchema | None = None,
) -> PatchSchema:
    """Shorthand for ``PatchParser(backend).parse(decl, target_schema)``."""
    return PatchParser(backend).parse(decl, target_schema)
