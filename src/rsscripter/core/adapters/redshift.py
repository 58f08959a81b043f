from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection

from rsscripter.core.errors import CatalogShapeError
from rsscripter.core.scripts import ValueType

# PostgreSQL type OIDs reported by the driver for result columns.
VALUE_TYPES_BY_OID: dict[int, ValueType] = {
    16: ValueType.BOOLEAN,
    18: ValueType.CHAR,
    20: ValueType.BIGINT,
    21: ValueType.SMALLINT,
    23: ValueType.INTEGER,
    25: ValueType.TEXT,
    700: ValueType.REAL,
    701: ValueType.DOUBLE,
    1042: ValueType.CHAR,
    1043: ValueType.VARCHAR,
    1082: ValueType.DATE,
    1114: ValueType.TIMESTAMP,
    1700: ValueType.NUMERIC,
}


def value_type_for_oid(oid: int) -> ValueType:
    """Map a driver type OID to the export value type."""
    try:
        return VALUE_TYPES_BY_OID[oid]
    except KeyError:
        raise CatalogShapeError(f"Unsupported data export value type (type OID {oid}).") from None


class RedshiftAdapter:
    """Adapter around a SQLAlchemy connection to a Redshift cluster (catalog queries and data export)."""

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def fetch_all(self, query: str, **params: Any) -> list[Mapping[str, Any]]:
        """Run a catalog query and return its rows keyed by column name."""
        result = self.connection.execute(text(query), params)
        return list(result.mappings())

    @contextmanager
    def stream_rows(
        self, query: str
    ) -> Iterator[tuple[Sequence[ValueType], Iterator[Sequence[Any]]]]:
        """Run an export query; yield the column value types and the row iterator."""
        # Export queries are literal SQL; no_parameters keeps `%` away from the driver's formatting.
        result = self.connection.execution_options(no_parameters=True).exec_driver_sql(query)
        try:
            description = result.cursor.description or ()
            value_types = [value_type_for_oid(column[1]) for column in description]
            yield value_types, iter(result)
        finally:
            result.close()
