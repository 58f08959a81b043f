from types import SimpleNamespace

import pytest

from rsscripter.core.adapters.redshift import RedshiftAdapter, value_type_for_oid
from rsscripter.core.errors import CatalogShapeError
from rsscripter.core.scripts import ValueType


class _FakeResult:
    def __init__(self, description, rows):
        self.cursor = SimpleNamespace(description=description)
        self._rows = rows
        self.closed = False

    def __iter__(self):
        return iter(self._rows)

    def close(self):
        self.closed = True


class _FakeConnection:
    """Records how export queries are executed."""

    def __init__(self, result):
        self.result = result
        self.options = {}
        self.queries = []

    def execution_options(self, **options):
        self.options.update(options)
        return self

    def exec_driver_sql(self, query):
        self.queries.append(query)
        return self.result


@pytest.mark.parametrize(
    ("oid", "value_type"),
    [(23, ValueType.INTEGER), (1043, ValueType.VARCHAR), (1114, ValueType.TIMESTAMP)],
)
def test_value_type_for_known_oids(oid, value_type):
    assert value_type_for_oid(oid) == value_type


def test_unknown_oid_is_a_shape_error():
    with pytest.raises(CatalogShapeError, match="type OID 1184"):
        value_type_for_oid(1184)


def test_stream_rows_maps_column_types_and_closes_result():
    result = _FakeResult(
        description=[
            ("id", 23, None, None, None, None, None),
            ("name", 1043, None, None, None, None, None),
        ],
        rows=[(1, "a"), (2, "b")],
    )
    connection = _FakeConnection(result)
    adapter = RedshiftAdapter(connection)

    with adapter.stream_rows("SELECT id, name FROM t WHERE name LIKE 'a%'") as (value_types, rows):
        assert value_types == [ValueType.INTEGER, ValueType.VARCHAR]
        assert list(rows) == [(1, "a"), (2, "b")]
        assert result.closed is False

    assert result.closed is True
    assert connection.options == {"no_parameters": True}
    assert connection.queries == ["SELECT id, name FROM t WHERE name LIKE 'a%'"]


def test_stream_rows_closes_result_on_unsupported_column_type():
    result = _FakeResult(description=[("created", 1184, None, None, None, None, None)], rows=[])
    adapter = RedshiftAdapter(_FakeConnection(result))

    with pytest.raises(CatalogShapeError):
        with adapter.stream_rows("SELECT created FROM t"):
            pass

    assert result.closed is True
