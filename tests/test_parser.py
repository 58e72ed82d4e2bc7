"""Unit tests for brickorm.schema.parser (TableParser / PatchParser)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from brickorm.config import configure
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
    PatchDeclaration,
    TableDeclaration,
    getter,
    insertable,
)
from brickorm.schema.parser import parse_patch, parse_table


def _attrs(**options: Any) -> list[Attribute]:
    return [Attribute(key=k, value=v) for k, v in options.items()]


def _field(name: str, type_: Any = int, **options: Any) -> FieldDeclaration:
    return FieldDeclaration(name=name, type=type_, attributes=_attrs(**options))


def _table(*fields: FieldDeclaration, name: str = "User", **options: Any) -> TableDeclaration:
    opts = {"table": "users", "id": "id", **options}
    return TableDeclaration(name=name, attributes=_attrs(**opts), fields=list(fields))


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def test_parses_canonical_declaration(users_decl):
    schema = parse_table(users_decl, "sqlite")

    assert schema.entity_name == "User"
    assert schema.table_name == "users"
    assert schema.identifier.name == "user_id"
    assert schema.identifier.column_name == "id"
    assert schema.identifier.is_default_generated
    assert schema.deletable
    assert schema.insertable.generated_struct_name == "InsertUser"
    assert schema.backend == "sqlite"
    assert [f.name for f in schema.insert_fields] == [
        "first_name", "last_name", "email", "disabled"
    ]
    assert [f.name for f in schema.default_fields] == ["user_id", "role", "created_at"]


def test_column_defaults_to_field_name():
    schema = parse_table(_table(_field("id"), _field("name", str)))
    assert schema.get_field("name").column_name == "name"


def test_default_accessor_names():
    schema = parse_table(
        _table(
            _field("id"),
            _field(
                "email", str,
                set=True, get_one=True, get_optional="find_email", get_by_any=True,
            ),
        )
    )
    email = schema.get_field("email")
    assert email.setter_name == "set_email"
    assert email.lookups.one.function_name == "by_email"
    assert email.lookups.optional.function_name == "find_email"
    assert email.lookups.any_of.function_name == "get_by_any_email"


def test_default_lookup_argument_types():
    schema = parse_table(_table(_field("id", get_many=True, get_by_any="by_ids")))
    lookups = schema.identifier.lookups
    assert lookups.many.argument_type is int
    assert lookups.any_of.argument_type == Sequence[int]


def test_explicit_getter_argument_type():
    schema = parse_table(_table(_field("id", get_one=getter("lookup", arg_type=str))))
    assert schema.identifier.lookups.one.function_name == "lookup"
    assert schema.identifier.lookups.one.argument_type is str


def test_insertable_with_name_and_config():
    schema = parse_table(
        _table(_field("id"), insertable=insertable("NewUser", frozen=True))
    )
    assert schema.insertable.generated_struct_name == "NewUser"
    assert schema.insertable.carried_annotations == {"frozen": True}


def test_private_entity_prefixes_accessors():
    schema = parse_table(_table(_field("id"), name="_User"))
    assert schema.visibility == "private"
    assert schema.accessor_name("by_id") == "_by_id"


def test_backend_option_overrides_default():
    schema = parse_table(_table(_field("id"), backend="mysql"), "sqlite")
    assert schema.backend == "mysql"


def test_configured_default_backend():
    configure(default_backend="sqlite")
    assert parse_table(_table(_field("id"))).backend == "sqlite"


class TestTableErrors:
    def test_missing_table(self):
        decl = TableDeclaration(name="User", attributes=_attrs(id="id"), fields=[_field("id")])
        with pytest.raises(MissingAttributeError, match="table") as exc_info:
            parse_table(decl)
        assert exc_info.value.code == "MISSING_ATTRIBUTE"
        assert exc_info.value.location == "User"

    def test_missing_id(self):
        decl = TableDeclaration(
            name="User", attributes=_attrs(table="users"), fields=[_field("id")]
        )
        with pytest.raises(MissingAttributeError, match="'id'"):
            parse_table(decl)

    def test_id_must_name_a_field(self):
        with pytest.raises(UnknownIdentifierFieldError) as exc_info:
            parse_table(_table(_field("user_id")))
        assert exc_info.value.details == {"id": "id", "fields": ["user_id"]}

    def test_duplicate_table_attribute(self):
        decl = TableDeclaration(
            name="User",
            attributes=_attrs(table="users", id="id") + _attrs(table="people"),
            fields=[_field("id")],
        )
        with pytest.raises(DuplicateAttributeError, match="table"):
            parse_table(decl)

    def test_duplicate_field_attribute(self):
        field = FieldDeclaration(
            name="id", attributes=_attrs(column="a") + _attrs(column="b")
        )
        with pytest.raises(DuplicateAttributeError) as exc_info:
            parse_table(_table(field))
        assert exc_info.value.location == "User.id"

    def test_default_requires_insertable(self):
        with pytest.raises(DefaultWithoutInsertableError):
            parse_table(_table(_field("id", default=True)))

    def test_unknown_attribute(self):
        with pytest.raises(UnknownAttributeError) as exc_info:
            parse_table(_table(_field("id", primary=True)))
        assert "column" in exc_info.value.details["allowed_attributes"]

    def test_invalid_attribute_value(self):
        with pytest.raises(InvalidAttributeError):
            parse_table(_table(_field("id", column=3)))

    def test_invalid_flag_value(self):
        with pytest.raises(InvalidAttributeError):
            parse_table(_table(_field("id"), deletable="yes"))

    def test_generated_names_collide(self):
        decl = _table(_field("id", get_one="find"), _field("email", str, get_many="find"))
        with pytest.raises(NameCollisionError, match="find"):
            parse_table(decl)

    def test_error_response_is_structured(self):
        with pytest.raises(MissingAttributeError) as exc_info:
            parse_table(TableDeclaration(name="User", fields=[_field("id")]))
        response = exc_info.value.to_error_response()
        assert response["error"] == "MISSING_ATTRIBUTE"
        assert response["location"] == "User"


class TestReservedIdentifiers:
    def test_reserved_field_warns_and_is_flagged(self):
        with pytest.warns(ReservedIdentifierWarning, match="order"):
            schema = parse_table(_table(_field("id"), _field("order")))
        assert schema.get_field("order").is_reserved

    def test_reserved_column_warns(self):
        with pytest.warns(ReservedIdentifierWarning):
            schema = parse_table(_table(_field("id"), _field("grp", column="group")))
        assert schema.get_field("grp").is_reserved

    def test_warning_can_be_disabled(self, recwarn):
        configure(warn_reserved_identifiers=False)
        schema = parse_table(_table(_field("id"), _field("order")))
        assert schema.get_field("order").is_reserved
        assert not [w for w in recwarn if issubclass(w.category, ReservedIdentifierWarning)]


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


def _patch(*fields: FieldDeclaration, **options: Any) -> PatchDeclaration:
    opts = {"table_name": "users", "table": "app.models.User", "id": "id", **options}
    return PatchDeclaration(name="UpdateUser", attributes=_attrs(**opts), fields=list(fields))


def test_parses_patch():
    schema = parse_patch(_patch(FieldDeclaration(name="first_name", type=str)))
    assert schema.target_table_name == "users"
    assert schema.target_entity_path == "app.models.User"
    assert schema.identifier_column == "id"
    assert [f.name for f in schema.fields] == ["first_name"]


def test_patch_target_as_class():
    class Target:
        pass

    schema = parse_patch(_patch(table=Target))
    assert schema.target_entity_path.endswith("Target")


@pytest.mark.parametrize("missing", ["table_name", "table", "id"])
def test_patch_missing_attribute(missing):
    opts = {"table_name": "users", "table": "app.User", "id": "id"}
    del opts[missing]
    decl = PatchDeclaration(name="UpdateUser", attributes=_attrs(**opts))
    with pytest.raises(MissingAttributeError, match=missing):
        parse_patch(decl)


def test_patch_rejects_table_level_options():
    with pytest.raises(UnknownAttributeError):
        parse_patch(_patch(deletable=True))


def test_patch_field_must_exist_on_target(users_decl):
    target = parse_table(users_decl, "sqlite")
    decl = _patch(FieldDeclaration(name="nickname", type=str))
    with pytest.raises(UnknownPatchFieldError):
        parse_patch(decl, target_schema=target)


def test_patch_field_cannot_be_identifier(users_decl):
    target = parse_table(users_decl, "sqlite")
    decl = _patch(FieldDeclaration(name="user_id", type=int))
    with pytest.raises(UnknownPatchFieldError):
        parse_patch(decl, target_schema=target)


def test_patch_inherits_target_backend(users_decl):
    target = parse_table(users_decl, "mysql")
    decl = _patch(FieldDeclaration(name="email", type=str))
    assert parse_patch(decl, target_schema=target).backend == "mysql"
