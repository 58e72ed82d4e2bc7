"""Raw declarations: the unvalidated input of the attribute parser.

A declaration is a struct name, an ordered list of struct-level attributes
and an ordered list of fields, each with its own attribute list.  Attributes
are plain ``key = value`` pairs; nothing is checked here.  Keeping the raw
form separate lets the parser detect duplicates and missing keys, and lets
declarations come from several sources:

* built directly or loaded from JSON via ``model_validate``;
* collected from :func:`orm` markers on a :class:`~brickorm.entity.Table`
  or :class:`~brickorm.entity.Patch` subclass::

      class User(Table):
          __brickorm__ = orm(table="users", id="user_id", insertable=True)

          user_id: Annotated[int, orm(column="id", default=True)]
          email: Annotated[str, orm(get_optional=True)]

* reflected from SQLAlchemy (:mod:`brickorm.schema.converters`).
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Attribute(BaseModel):
    """A single ``key = value`` option.

    Flag options (``custom_type``, ``default``, ``deletable``, ...) use
    ``True`` as their value.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    key: str
    value: Any = True


class GetterOption(BaseModel):
    """Value of a ``get_one`` / ``get_optional`` / ``get_many`` / ``get_by_any`` option.

    Attributes:
        name: Generated function name; ``None`` uses the default pattern.
        arg_type: Argument type; ``None`` uses the field type (or a sequence
            of it for ``get_by_any``).
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    name: str | None = None
    arg_type: Any = None


class InsertableOption(BaseModel):
    """Value of an ``insertable`` option.

    Attributes:
        name: Name of the generated insert model (default ``Insert<Entity>``).
        config: pydantic ``ConfigDict`` keywords applied to the generated model.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class FieldDeclaration(BaseModel):
    """A raw field: name, semantic type and attributes.

    Attributes:
        name: Field name on the entity.
        type: Semantic type.  A Python type for class-based declarations, or
            any descriptive value (e.g. ``"int"``) for data-only ones.
        attributes: Field-level options in declaration order.
        extra: pydantic ``Field`` keywords carried onto generated models.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    name: str
    type: Any = None
    attributes: list[Attribute] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)


class StructDeclaration(BaseModel):
    """Shared shape of table and patch declarations."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    name: str
    attributes: list[Attribute] = Field(default_factory=list)
    fields: list[FieldDeclaration] = Field(default_factory=list)

    @property
    def field_names(self) -> list[str]:
        """Returns all field names in declaration order."""
        return [f.name for f in self.fields]


class TableDeclaration(StructDeclaration):
    """Raw declaration of a table entity."""


class PatchDeclaration(StructDeclaration):
    """Raw declaration of a patch (subset-of-fields update)."""


# ---------------------------------------------------------------------------
# Marker helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrmOptions:
    """Marker produced by :func:`orm`; holds attributes in keyword order.

    A plain dataclass rather than a model: pydantic would treat a model
    instance found in ``Annotated`` metadata as a schema hook.
    """

    attributes: tuple[Attribute, ...] = ()


def orm(**options: Any) -> OrmOptions:
    """Declare options on a struct (``__brickorm__``) or a field (``Annotated``).

    Several markers may be combined; repeating a key across them is reported
    as a duplicate by the parser.
    """
    return OrmOptions(
        attributes=tuple(Attribute(key=k, value=v) for k, v in options.items())
    )


def getter(name: str | None = None, arg_type: Any = None) -> GetterOption:
    """Build a lookup option with an explicit name and/or argument type."""
    return GetterOption(name=name, arg_type=arg_type)


def insertable(name: str | None = None, **config: Any) -> InsertableOption:
    """Build an ``insertable`` option naming and configuring the insert model."""
    return InsertableOption(name=name, config=config)


def collect_attributes(markers: Iterable[Any]) -> list[Attribute]:
    """Flatten every :class:`OrmOptions` in ``markers``; other values are ignored."""
    attributes: list[Attribute] = []
    for marker in markers:
        if isinstance(marker, OrmOptions):
            attributes.extend(marker.attributes)
    return attributes
