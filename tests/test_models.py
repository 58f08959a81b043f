import pytest

from rsscripter.core.errors import CatalogShapeError, OwnershipError
from rsscripter.core.models import (
    Column,
    Constraint,
    ConstraintType,
    Database,
    Schema,
    Table,
    View,
)
from rsscripter.core.quoting import QuoteMode


def test_adding_a_child_sets_its_back_reference():
    schema = Schema(name="public")
    table = schema.tables.add(Table(name="orders"))
    column = table.columns.add(Column(name="id", data_type="integer"))

    assert table.schema is schema
    assert column.parent is table
    assert schema.tables["ORDERS"] is table
    assert schema.tables[0] is table
    assert "orders" in schema.tables
    assert table in schema.tables


def test_removing_a_child_clears_its_back_reference():
    schema = Schema(name="public")
    table = schema.tables.add(Table(name="orders"))

    schema.tables.remove(table)

    assert table.schema is None
    assert "orders" not in schema.tables
    assert len(schema.tables) == 0


def test_clear_unlinks_every_child():
    table = Table(name="orders")
    first = table.columns.add(Column(name="id"))
    second = table.columns.add(Column(name="note"))

    table.columns.clear()

    assert not table.columns
    assert first.parent is None
    assert second.parent is None


def test_duplicate_names_are_rejected_case_insensitively():
    table = Table(name="orders")
    table.columns.add(Column(name="id"))

    with pytest.raises(OwnershipError, match="same name"):
        table.columns.add(Column(name="ID"))


def test_a_child_cannot_belong_to_two_parents():
    first = Schema(name="a")
    second = Schema(name="b")
    table = first.tables.add(Table(name="orders"))

    with pytest.raises(OwnershipError, match="already belongs"):
        second.tables.add(table)
    assert table.schema is first


def test_ownership_error_is_a_value_error():
    assert issubclass(OwnershipError, ValueError)


def test_removing_an_unknown_child_raises_key_error():
    table = Table(name="orders")
    with pytest.raises(KeyError):
        table.columns.remove(Column(name="id"))


def test_database_holds_schemas_and_groups():
    database = Database(name="sales")
    schema = database.schemas.add(Schema(name="public"))

    assert schema.database is database
    assert database.schemas.get("PUBLIC") is schema
    assert database.schemas.get("missing") is None


def test_column_qualified_name_includes_schema_and_table():
    schema = Schema(name="public")
    table = schema.tables.add(Table(name="orders"))
    column = table.columns.add(Column(name="group"))

    assert column.qualified_name(QuoteMode.WHEN_NECESSARY) == "public.orders.group"
    assert column.qualified_name(QuoteMode.ALWAYS) == '"public"."orders"."group"'
    assert str(column) == "public.orders.group"


def test_view_qualified_name():
    schema = Schema(name="public")
    view = schema.views.add(View(name="group"))

    assert view.qualified_name(QuoteMode.WHEN_NECESSARY) == "public.group"
    assert view.qualified_name(QuoteMode.ALWAYS) == '"public"."group"'


@pytest.mark.parametrize(
    ("encoding", "expected"),
    [(None, False), ("none", False), ("RAW", False), ("lzo", True), ("zstd", True)],
)
def test_has_compression_encoding(encoding, expected):
    assert Column(name="c", compression_encoding=encoding).has_compression_encoding is expected


def test_sort_keys_are_ordered_by_position():
    table = Table(name="events")
    table.columns.add(Column(name="a", sort_key_number=2))
    table.columns.add(Column(name="b"))
    table.columns.add(Column(name="c", sort_key_number=1))

    assert [c.name for c in table.sort_keys()] == ["c", "a"]


def test_more_than_one_distribution_key_is_a_shape_error():
    table = Table(name="events")
    table.columns.add(Column(name="a", is_distribution_key=True))
    table.columns.add(Column(name="b", is_distribution_key=True))

    with pytest.raises(CatalogShapeError):
        _ = table.distribution_key


def test_more_than_one_primary_key_is_a_shape_error():
    table = Table(name="events")
    table.constraints.add(Constraint(name="pk1", constraint_type=ConstraintType.PRIMARY_KEY))
    table.constraints.add(Constraint(name="pk2", constraint_type=ConstraintType.PRIMARY_KEY))

    with pytest.raises(CatalogShapeError):
        _ = table.primary_key


def test_constraints_are_split_by_kind():
    table = Table(name="events")
    pk = table.constraints.add(Constraint(name="pk", constraint_type=ConstraintType.PRIMARY_KEY))
    uq = table.constraints.add(Constraint(name="uq", constraint_type=ConstraintType.UNIQUE))
    fk = table.constraints.add(Constraint(name="fk", constraint_type=ConstraintType.FOREIGN_KEY))

    assert table.primary_key is pk
    assert table.unique_constraints() == [uq]
    assert table.foreign_key_constraints() == [fk]
