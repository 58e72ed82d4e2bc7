"""Utilities for building table declarations from external sources.

SQLAlchemy converter
--------------------
:func:`declaration_from_sqlalchemy` turns a SQLAlchemy
:class:`~sqlalchemy.schema.Table` into a
:class:`~brickorm.schema.declaration.TableDeclaration`;
:func:`declarations_from_sqlalchemy` reflects a live engine and converts
every table it finds.

Install the optional dependency before using this module::

    pip install "brickorm[sqlalchemy]"

Example::

    from sqlalchemy import create_engine
    from brickorm.schema.converters import declarations_from_sqlalchemy
    from brickorm.schema.parser import parse_table

    engine = create_engine("sqlite:///mydb.db")
    schemas = [parse_table(d, "sqlite") for d in declarations_from_sqlalchemy(engine)]
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from brickorm.schema.declaration import Attribute, FieldDeclaration, TableDeclaration

if TYPE_CHECKING:
    from sqlalchemy import Column, Engine, Table


def declaration_from_sqlalchemy(
    table: Table,
    name: str | None = None,
    *,
    field_options: dict[str, dict[str, Any]] | None = None,
    **table_options: Any,
) -> TableDeclaration:
    """Build a :class:`TableDeclaration` from a SQLAlchemy table.

    Field names equal column names.  The single-column primary key becomes
    the ``id``; columns with a server default, and an autoincrementing
    integer primary key, are marked ``default``.  A table with default
    columns is made ``insertable`` unless told otherwise.

    Args:
        table: The SQLAlchemy table (declared or reflected).
        name: Entity name.  Defaults to the CamelCase form of the table name.
        field_options: Extra options per field, e.g.
            ``{"email": {"get_optional": True}}``.
        **table_options: Extra table-level options (``deletable=True``, ...).
            They override the derived ``insertable``.

    Returns:
        An unvalidated declaration; pass it to
        :func:`~brickorm.schema.parser.parse_table`.

    Raises:
        ValueError: If the table has no primary key or a composite one.
    """
    pk = list(table.primary_key.columns)
    if len(pk) != 1:
        raise ValueError(
            f"table '{table.name}' needs a single-column primary key, found {len(pk)}"
        )
    id_column = pk[0]
    field_options = field_options or {}

    fields = []
    has_default = False
    for col in table.columns:
        attrs: list[Attribute] = []
        if _is_generated(col, id_column):
            attrs.append(Attribute(key="default"))
            has_default = True
        attrs.extend(
            Attribute(key=k, value=v) for k, v in field_options.get(col.name, {}).items()
        )
        fields.append(
            FieldDeclaration(name=col.name, type=_python_type(col), attributes=attrs)
        )

    options: dict[str, Any] = {"table": table.name, "id": id_column.name}
    if has_default:
        options["insertable"] = True
    options.update(table_options)

    return TableDeclaration(
        name=name or _entity_name(table.name),
        attributes=[Attribute(key=k, value=v) for k, v in options.items()],
        fields=fields,
    )


def declarations_from_sqlalchemy(
    engine: Engine,
    *,
    include_tables: list[str] | None = None,
    schema: str | None = None,
) -> list[TableDeclaration]:
    """Reflect ``engine`` and convert every table with a single-column key.

    Args:
        engine: A connected :class:`sqlalchemy.engine.Engine` instance.
        include_tables: Optional allowlist of table names to reflect.
        schema: Optional database schema name (e.g. ``"public"``).

    Raises:
        ImportError: If ``sqlalchemy`` is not installed.
    """
    try:
        from sqlalchemy import MetaData as _MetaData
    except ImportError as exc:
        raise ImportError(
            "SQLAlchemy is required for declarations_from_sqlalchemy(). "
            'Install it with: pip install "brickorm[sqlalchemy]"'
        ) from exc

    metadata = _MetaData()
    with engine.connect() as conn:
        metadata.reflect(bind=conn, only=include_tables, schema=schema)

    return [
        declaration_from_sqlalchemy(t)
        for t in metadata.sorted_tables
        if len(t.primary_key.columns) == 1
    ]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _is_generated(col: Column, id_column: Column) -> bool:
    if col.server_default is not None:
        return True
    if col is not id_column:
        return False
    # SQLAlchemy reports "auto" for integer primary keys it will autoincrement.
    if col.autoincrement is True:
        return True
    return col.autoincrement == "auto" and _python_type(col) is int


def _python_type(col: Column) -> Any:
    try:
        return col.type.python_type
    except NotImplementedError:
        return None


def _entity_name(table_name: str) -> str:
    """``user_accounts`` → ``UserAccounts``."""
    return "".join(part.capitalize() for part in table_name.split("_") if part)
