"""The validated Schema Model.

Produced by :mod:`brickorm.schema.parser`, consumed by the generators in
:mod:`brickorm.compile`.  Every model is frozen: a schema is built once per
declared table and never changes afterwards.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Visibility = Literal["public", "private"]


class LookupSpec(BaseModel):
    """A resolved lookup declaration.

    Attributes:
        function_name: Name of the generated lookup function.
        argument_type: Type the call argument is validated against.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    function_name: str
    argument_type: Any = None


class LookupSpecs(BaseModel):
    """The four lookup kinds a field may carry."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    one: LookupSpec | None = None
    optional: LookupSpec | None = None
    many: LookupSpec | None = None
    any_of: LookupSpec | None = None

    def declared(self) -> list[tuple[str, LookupSpec]]:
        """Returns ``(kind, spec)`` pairs for every declared lookup."""
        kinds = ("one", "optional", "many", "any_of")
        return [(k, getattr(self, k)) for k in kinds if getattr(self, k) is not None]


class FieldDescriptor(BaseModel):
    """Metadata for a single entity field.

    Attributes:
        name: Field name on the entity.
        semantic_type: Declared type of the field.
        column_name: Column the field maps to.
        is_identifier: Whether this is the table's identifier.
        is_custom_type: Whether the decoder must coerce the column value into
            ``semantic_type``; selected columns are annotated accordingly.
        is_default_generated: Whether the database produces the value on insert.
        is_reserved: Whether the field or column name is a reserved word.
        lookups: Lookup functions generated for this field.
        setter_name: Name of the generated setter, if any.
        pass_by_reference: Merge the value into entities without copying.
        extra_emit_attributes: pydantic ``Field`` keywords carried onto the
            generated insert model.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    name: str
    semantic_type: Any = None
    column_name: str
    is_identifier: bool = False
    is_custom_type: bool = False
    is_default_generated: bool = False
    is_reserved: bool = False
    lookups: LookupSpecs = Field(default_factory=LookupSpecs)
    setter_name: str | None = None
    pass_by_reference: bool = False
    extra_emit_attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_insert_excluded(self) -> bool:
        """Default-generated fields never appear in the insert row."""
        return self.is_default_generated


class InsertSpec(BaseModel):
    """Shape of the generated "new row" model.

    Attributes:
        generated_struct_name: Name of the generated model.
        carried_annotations: pydantic ``ConfigDict`` keywords for that model.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    generated_struct_name: str
    carried_annotations: dict[str, Any] = Field(default_factory=dict)


class TableSchema(BaseModel):
    """A validated table declaration.

    Attributes:
        entity_name: Name of the entity type.
        visibility: ``"private"`` prefixes generated accessor names with ``_``.
        table_name: Table the entity maps to.
        identifier: The identifier field (also present in ``fields``).
        fields: All fields in declaration order.
        insertable: Insert model shape, or ``None`` if inserts are disabled.
        deletable: Whether ``delete`` operations are generated.
        backend: Name of the backend the table is compiled for.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    entity_name: str
    visibility: Visibility = "public"
    table_name: str
    identifier: FieldDescriptor
    fields: tuple[FieldDescriptor, ...]
    insertable: InsertSpec | None = None
    deletable: bool = False
    backend: str | None = None

    @property
    def location(self) -> str:
        return self.entity_name

    @property
    def fields_except_id(self) -> tuple[FieldDescriptor, ...]:
        """All fields other than the identifier, in declaration order."""
        return tuple(f for f in self.fields if not f.is_identifier)

    @property
    def insert_fields(self) -> tuple[FieldDescriptor, ...]:
        """Fields supplied by the caller on insert."""
        return tuple(f for f in self.fields if not f.is_insert_excluded)

    @property
    def default_fields(self) -> tuple[FieldDescriptor, ...]:
        """Fields whose values are generated by the database."""
        return tuple(f for f in self.fields if f.is_default_generated)

    def accessor_name(self, name: str) -> str:
        """Apply the visibility convention to a generated accessor name."""
        if self.visibility == "private" and not name.startswith("_"):
            return f"_{name}"
        return name

    def get_field(self, name: str) -> FieldDescriptor | None:
        """Returns the field named ``name``, or ``None``."""
        for f in self.fields:
            if f.name == name:
                return f
        return None


class PatchField(BaseModel):
    """A single field of a patch."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    column_name: str
    is_custom_type: bool = False
    is_reserved: bool = False
    pass_by_reference: bool = False


class PatchSchema(BaseModel):
    """A validated patch declaration.

    Attributes:
        entity_name: Name of the patch type.
        target_table_name: Table the patch updates.
        target_entity_path: Dotted path of the owning entity type.
        identifier_column: Column used in the ``WHERE`` clause.
        fields: Patched fields in declaration order.
        backend: Name of the backend the patch is compiled for.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    entity_name: str
    target_table_name: str
    target_entity_path: str
    identifier_column: str
    fields: tuple[PatchField, ...]
    backend: str | None = None

    @property
    def location(self) -> str:
        return self.entity_name
