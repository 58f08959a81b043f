import pytest

from rsscripter.core import catalog
from rsscripter.core.catalog import load_database, parse_column_numbers
from rsscripter.core.errors import CatalogShapeError, ConfigurationError
from rsscripter.core.models import ConstraintType, DistributionStyle


def _table_row(name, kind="r", **overrides):
    row = {
        "name": name,
        "kind": kind,
        "schema_name": "public",
        "owner": "etl",
        "access_control_list": None,
        "distribution_style": 0,
        "estimated_row_count": 0,
        "definition": None,
        "description": None,
    }
    row.update(overrides)
    return row


def _column_row(parent, name, *, parent_kind="r", **overrides):
    row = {
        "schema_name": "public",
        "parent_name": parent,
        "parent_kind": parent_kind,
        "column_name": name,
        "data_type": "integer",
        "is_not_null": False,
        "default_value": None,
        "description": None,
        "compression_encoding": "none",
        "is_distribution_key": False,
        "sort_key_number": 0,
    }
    row.update(overrides)
    return row


def _constraint_row(name, contype, numbers, **overrides):
    row = {
        "schema_name": "public",
        "parent_name": "orders",
        "constraint_name": name,
        "constraint_type": contype,
        "column_numbers": numbers,
        "definition": "PRIMARY KEY (id)",
        "description": None,
    }
    row.update(overrides)
    return row


class _Adapter:
    """Serves canned rows per catalog query and records the calls."""

    def __init__(self, **rows):
        self.rows = {
            catalog.DATABASE_QUERY: [
                {
                    "database_name": "sales",
                    "owner": "admin",
                    "access_control_list": "group analysts=c/admin",
                    "description": "Sales",
                }
            ],
            catalog.GROUPS_QUERY: [{"name": "analysts"}],
            catalog.SCHEMAS_QUERY: [
                {
                    "schema_name": "public",
                    "owner": "admin",
                    "access_control_list": None,
                    "description": "Standard",
                }
            ],
            catalog.TABLES_AND_VIEWS_QUERY: [
                _table_row("orders", distribution_style=1, estimated_row_count=42.0),
                _table_row("open_orders", kind="v", definition="SELECT id FROM public.orders"),
            ],
            catalog.COLUMNS_QUERY: [
                _column_row("orders", "id", is_not_null=True, is_distribution_key=True, sort_key_number=1),
                _column_row("orders", "note", data_type="text", compression_encoding="lzo"),
                _column_row("open_orders", "id", parent_kind="v"),
            ],
            catalog.CONSTRAINTS_QUERY: [
                _constraint_row("orders_pkey", "p", [1]),
                _constraint_row("orders_note_key", "u", "{2}", definition="UNIQUE (note)"),
            ],
        }
        for key, value in rows.items():
            self.rows[getattr(catalog, key)] = value
        self.calls: list[tuple[str, dict]] = []

    def fetch_all(self, query, **params):
        self.calls.append((query, params))
        return self.rows.get(query, [])


def test_load_database_builds_the_model():
    adapter = _Adapter()

    database = load_database(adapter, "sales")

    assert adapter.calls[0] == (catalog.DATABASE_QUERY, {"database_name": "sales"})
    assert database.name == "sales"
    assert database.owner == "admin"
    assert [g.name for g in database.groups] == ["analysts"]

    public = database.schemas["public"]
    assert public.description == "Standard"

    orders = public.tables["orders"]
    assert orders.distribution_style == DistributionStyle.KEY
    assert orders.estimated_row_count == 42
    assert orders.distribution_key is orders.columns["id"]
    assert orders.columns["id"].is_nullable is False
    assert orders.columns["note"].compression_encoding == "lzo"
    assert [c.name for c in orders.sort_keys()] == ["id"]

    assert orders.primary_key.constraint_type == ConstraintType.PRIMARY_KEY
    assert orders.primary_key.columns == [orders.columns["id"]]
    assert orders.unique_constraints()[0].columns == [orders.columns["note"]]

    view = public.views["open_orders"]
    assert view.definition == "SELECT id FROM public.orders"
    assert [c.name for c in view.columns] == ["id"]


def test_unknown_database_is_a_configuration_error():
    adapter = _Adapter(DATABASE_QUERY=[])

    with pytest.raises(ConfigurationError, match="'missing' was not found"):
        load_database(adapter, "missing")


def test_empty_database_name_is_rejected():
    with pytest.raises(ConfigurationError):
        load_database(_Adapter(), "")


def test_unknown_constraint_type_is_a_shape_error():
    adapter = _Adapter(CONSTRAINTS_QUERY=[_constraint_row("orders_check", "c", [1])])

    with pytest.raises(CatalogShapeError, match="constraint type"):
        load_database(adapter, "sales")


def test_constraint_column_outside_table_is_a_shape_error():
    adapter = _Adapter(CONSTRAINTS_QUERY=[_constraint_row("orders_pkey", "p", [3])])

    with pytest.raises(CatalogShapeError, match="column number 3"):
        load_database(adapter, "sales")


def test_constraint_columns_resolve_by_position():
    adapter = _Adapter(CONSTRAINTS_QUERY=[_constraint_row("orders_pkey", "p", "{2,1}")])

    database = load_database(adapter, "sales")

    orders = database.schemas["public"].tables["orders"]
    assert [c.name for c in orders.primary_key.columns] == ["note", "id"]


def test_unknown_distribution_style_is_a_shape_error():
    adapter = _Adapter(TABLES_AND_VIEWS_QUERY=[_table_row("orders", distribution_style=5)])

    with pytest.raises(CatalogShapeError, match="distribution style"):
        load_database(adapter, "sales")


def test_missing_distribution_style_defaults_to_even():
    assert catalog.distribution_style_from_code(None) == DistributionStyle.EVEN
    assert catalog.distribution_style_from_code(8) == DistributionStyle.ALL


def test_column_of_unknown_relation_is_a_shape_error():
    adapter = _Adapter(COLUMNS_QUERY=[_column_row("ghost", "id")])

    with pytest.raises(CatalogShapeError, match="ghost"):
        load_database(adapter, "sales")


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, []), ("{}", []), ("{1,2}", [1, 2]), ("{ 3 }", [3]), ([4, 5], [4, 5]), ((1,), [1])],
)
def test_parse_column_numbers(value, expected):
    assert parse_column_numbers(value) == expected
