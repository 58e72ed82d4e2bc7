"""Column list rendering shared by every SELECT and RETURNING clause.

Per field:

* ``col``                    column name equals the field name;
* ``col AS field``           renamed column;
* ``col AS "field: _"``      custom-typed column.  The ``: _`` suffix marks a
  value the decoder coerces into the declared type; :func:`output_name`
  strips it again.

Reserved identifiers are quoted in both positions.
"""
from __future__ import annotations

from collections.abc import Iterable

from brickorm.compile.base import Backend
from brickorm.schema.model import FieldDescriptor

#: Alias suffix marking a custom-typed column.
TYPE_MARKER = ": _"


def format_for_select(backend: Backend, field: FieldDescriptor) -> str:
    """Return the select-list entry for one field."""
    column = backend.quote(field.column_name)
    if field.is_custom_type:
        return f"{column} AS {backend.quote(field.name + TYPE_MARKER, force=True)}"
    if field.column_name != field.name:
        return f"{column} AS {backend.quote(field.name)}"
    return column


def column_list(backend: Backend, fields: Iterable[FieldDescriptor]) -> str:
    """Return the comma-separated select list for ``fields``."""
    return ", ".join(format_for_select(backend, f) for f in fields)


def assignments(backend: Backend, columns: Iterable[str], placeholders) -> str:
    """Return ``col = ph, ...`` drawing one placeholder per column."""
    return ", ".join(f"{backend.quote(c)} = {next(placeholders)}" for c in columns)


def output_name(name: str) -> str:
    """Map a result column name back to the field it decodes into."""
    if name.endswith(TYPE_MARKER):
        return name[: -len(TYPE_MARKER)]
    return name
