"""brickORM schema layer: raw declarations, the parser and the Schema Model."""
from brickorm.schema.declaration import (
    Attribute,
    FieldDeclaration,
    GetterOption,
    InsertableOption,
    OrmOptions,
    PatchDeclaration,
    TableDeclaration,
    getter,
    insertable,
    orm,
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
from brickorm.schema.parser import PatchParser, TableParser, parse_patch, parse_table

__all__ = [
    "Attribute",
    "FieldDeclaration",
    "GetterOption",
    "InsertableOption",
    "OrmOptions",
    "PatchDeclaration",
    "TableDeclaration",
    "getter",
    "insertable",
    "orm",
    "FieldDescriptor",
    "InsertSpec",
    "LookupSpec",
    "LookupSpecs",
    "PatchField",
    "PatchSchema",
    "TableSchema",
    "PatchParser",
    "TableParser",
    "parse_patch",
    "parse_table",
]
