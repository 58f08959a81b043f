"""Read the catalog of a Redshift database into the in-memory model.

Each query's rows are mapped to model fields by column name. Objects are
loaded level by level: database, groups, schemas, tables and views,
columns, then constraints (which refer to columns by position).
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from rsscripter.core.errors import CatalogShapeError, ConfigurationError
from rsscripter.core.models import (
    Column,
    Constraint,
    ConstraintType,
    Database,
    DistributionStyle,
    Group,
    Schema,
    Table,
    View,
)

Row = Mapping[str, Any]

_SYSTEM_SCHEMAS = """nsp.nspname NOT IN ('information_schema', 'pg_catalog', 'pg_internal', 'pg_toast')
    AND nsp.nspname NOT LIKE 'pg_temp_%'"""

DATABASE_QUERY = """
SELECT
    dat.datname AS database_name,
    u.usename AS owner,
    array_to_string(dat.datacl, '\n') AS access_control_list,
    d.description
FROM pg_catalog.pg_database AS dat
    INNER JOIN pg_catalog.pg_user AS u ON u.usesysid = dat.datdba
    LEFT OUTER JOIN pg_catalog.pg_description AS d ON d.objoid = dat.oid AND d.objsubid = 0
WHERE dat.datname = :database_name;
"""

GROUPS_QUERY = """
SELECT groname AS name
FROM pg_catalog.pg_group
ORDER BY groname;
"""

SCHEMAS_QUERY = f"""
SELECT
    nsp.nspname AS schema_name,
    u.usename AS owner,
    array_to_string(nsp.nspacl, '\n') AS access_control_list,
    d.description
FROM pg_catalog.pg_namespace AS nsp
    INNER JOIN pg_catalog.pg_user AS u ON u.usesysid = nsp.nspowner
    LEFT OUTER JOIN pg_catalog.pg_description AS d ON d.objoid = nsp.oid AND d.objsubid = 0
WHERE {_SYSTEM_SCHEMAS}
ORDER BY nsp.nspname;
"""

TABLES_AND_VIEWS_QUERY = f"""
SELECT
    c.relname AS name,
    c.relkind AS kind,
    nsp.nspname AS schema_name,
    u.usename AS owner,
    array_to_string(c.relacl, '\n') AS access_control_list,
    c.reldiststyle AS distribution_style,
    c.reltuples::bigint AS estimated_row_count,
    CASE WHEN c.relkind = 'v' THEN pg_get_viewdef(c.oid, true) END AS definition,
    d.description
FROM pg_catalog.pg_class AS c
    INNER JOIN pg_catalog.pg_namespace AS nsp ON nsp.oid = c.relnamespace
    INNER JOIN pg_catalog.pg_user AS u ON u.usesysid = c.relowner
    LEFT OUTER JOIN pg_catalog.pg_description AS d ON d.objoid = c.oid AND d.objsubid = 0
WHERE c.relkind IN ('r', 'v')
    AND {_SYSTEM_SCHEMAS}
ORDER BY nsp.nspname, c.relname;
"""

COLUMNS_QUERY = f"""
SELECT
    nsp.nspname AS schema_name,
    c.relname AS parent_name,
    c.relkind AS parent_kind,
    a.attname AS column_name,
    format_type(a.atttypid, a.atttypmod) AS data_type,
    a.attnotnull AS is_not_null,
    pg_get_expr(ad.adbin, ad.adrelid) AS default_value,
    d.description,
    format_encoding(a.attencodingtype) AS compression_encoding,
    a.attisdistkey AS is_distribution_key,
    a.attsortkeyord AS sort_key_number
FROM pg_catalog.pg_attribute AS a
    INNER JOIN pg_catalog.pg_class AS c ON c.oid = a.attrelid
    INNER JOIN pg_catalog.pg_namespace AS nsp ON nsp.oid = c.relnamespace
    LEFT JOIN pg_catalog.pg_attrdef AS ad ON ad.adrelid = a.attrelid AND ad.adnum = a.attnum
    LEFT JOIN pg_catalog.pg_description AS d ON d.objoid = a.attrelid AND d.objsubid = a.attnum
WHERE a.attnum > 0
    AND NOT a.attisdropped
    AND c.relkind IN ('r', 'v')
    AND {_SYSTEM_SCHEMAS}
ORDER BY nsp.nspname, c.relname, a.attnum;
"""

CONSTRAINTS_QUERY = f"""
SELECT
    nsp.nspname AS schema_name,
    c.relname AS parent_name,
    con.conname AS constraint_name,
    con.contype AS constraint_type,
    con.conkey AS column_numbers,
    pg_get_constraintdef(con.oid, true) AS definition,
    d.description
FROM pg_catalog.pg_constraint AS con
    INNER JOIN pg_catalog.pg_class AS c ON c.oid = con.conrelid
    INNER JOIN pg_catalog.pg_namespace AS nsp ON nsp.oid = c.relnamespace
    LEFT JOIN pg_catalog.pg_description AS d ON d.objoid = con.oid AND d.objsubid = 0
WHERE c.relkind = 'r'
    AND {_SYSTEM_SCHEMAS}
ORDER BY nsp.nspname, c.relname, con.conname;
"""


class CatalogAdapter(Protocol):
    """Interface for running catalog queries."""

    def fetch_all(self, query: str, **params: Any) -> list[Row]:
        """Return the rows of a query keyed by column name."""
        ...


def constraint_type_from_code(code: str) -> ConstraintType:
    try:
        return ConstraintType(code)
    except ValueError:
        raise CatalogShapeError(f"Unrecognized constraint type: {code!r}") from None


def distribution_style_from_code(code: int | None) -> DistributionStyle:
    """Map `pg_class.reldiststyle` to a distribution style (NULL means EVEN)."""
    if code is None:
        return DistributionStyle.EVEN
    try:
        return DistributionStyle(int(code))
    except ValueError:
        raise CatalogShapeError(f"Unrecognized distribution style: {code!r}") from None


def parse_column_numbers(value: Any) -> list[int]:
    """Return `pg_constraint.conkey` as a list, accepting an array or its `{1,2}` text form."""
    if value is None:
        return []
    if isinstance(value, str):
        body = value.strip().strip("{}").strip()
        return [int(part) for part in body.split(",")] if body else []
    return [int(number) for number in value]


def database_from_row(row: Row) -> Database:
    return Database(
        name=row["database_name"],
        owner=row["owner"],
        access_control_list=row["access_control_list"],
        description=row["description"],
    )


def schema_from_row(row: Row) -> Schema:
    return Schema(
        name=row["schema_name"],
        owner=row["owner"],
        access_control_list=row["access_control_list"],
        description=row["description"],
    )


def table_from_row(row: Row) -> Table:
    return Table(
        name=row["name"],
        owner=row["owner"],
        access_control_list=row["access_control_list"],
        description=row["description"],
        distribution_style=distribution_style_from_code(row["distribution_style"]),
        estimated_row_count=int(row["estimated_row_count"] or 0),
    )


def view_from_row(row: Row) -> View:
    return View(
        name=row["name"],
        owner=row["owner"],
        access_control_list=row["access_control_list"],
        description=row["description"],
        definition=row["definition"] or "",
    )


def column_from_row(row: Row) -> Column:
    return Column(
        name=row["column_name"],
        data_type=row["data_type"],
        is_nullable=not row["is_not_null"],
        default_value=row["default_value"],
        compression_encoding=row["compression_encoding"],
        is_distribution_key=bool(row["is_distribution_key"]),
        sort_key_number=int(row["sort_key_number"] or 0),
        description=row["description"],
    )


def _schema(database: Database, name: str) -> Schema:
    schema = database.schemas.get(name)
    if schema is None:
        raise CatalogShapeError(f"Catalog row refers to unknown schema '{name}'.")
    return schema


def load_database(adapter: CatalogAdapter, name: str) -> Database:
    """Read the complete model of the named database."""
    if not name:
        raise ConfigurationError("A database name is required.")

    rows = adapter.fetch_all(DATABASE_QUERY, database_name=name)
    if not rows:
        raise ConfigurationError(
            f"Database with name '{name}' was not found (or the user does not have permissions)."
        )
    database = database_from_row(rows[0])

    for row in adapter.fetch_all(GROUPS_QUERY):
        database.groups.add(Group(name=row["name"]))

    for row in adapter.fetch_all(SCHEMAS_QUERY):
        database.schemas.add(schema_from_row(row))

    load_tables_and_views(database, adapter.fetch_all(TABLES_AND_VIEWS_QUERY))
    load_columns(database, adapter.fetch_all(COLUMNS_QUERY))
    load_constraints(database, adapter.fetch_all(CONSTRAINTS_QUERY))
    return database


def load_tables_and_views(database: Database, rows: list[Row]) -> None:
    for row in rows:
        schema = _schema(database, row["schema_name"])
        kind = row["kind"]
        if kind == "r":
            schema.tables.add(table_from_row(row))
        elif kind == "v":
            schema.views.add(view_from_row(row))


def load_columns(database: Database, rows: list[Row]) -> None:
    for row in rows:
        schema = _schema(database, row["schema_name"])
        kind = row["parent_kind"]
        if kind == "r":
            parent = schema.tables.get(row["parent_name"])
        elif kind == "v":
            parent = schema.views.get(row["parent_name"])
        else:
            continue
        if parent is None:
            raise CatalogShapeError(
                f"Column '{row['column_name']}' refers to unknown relation "
                f"'{schema.name}.{row['parent_name']}'."
            )
        parent.columns.add(column_from_row(row))


def load_constraints(database: Database, rows: list[Row]) -> None:
    """
    Attach constraints to their tables.

    Redshift removes dropped columns from pg_attribute, so a constraint's
    column number minus one indexes the table's column list.
    """
    for row in rows:
        schema = _schema(database, row["schema_name"])
        table = schema.tables.get(row["parent_name"])
        if table is None:
            raise CatalogShapeError(
                f"Constraint '{row['constraint_name']}' refers to unknown table "
                f"'{schema.name}.{row['parent_name']}'."
            )
        constraint = Constraint(
            name=row["constraint_name"],
            constraint_type=constraint_type_from_code(row["constraint_type"]),
            definition=row["definition"],
            description=row["description"],
        )
        for number in parse_column_numbers(row["column_numbers"]):
            if not 1 <= number <= len(table.columns):
                raise CatalogShapeError(
                    f"Constraint '{constraint.name}' on '{table}' refers to column "
                    f"number {number}, but the table has {len(table.columns)} columns."
                )
            constraint.columns.append(table.columns[number - 1])
        table.constraints.add(constraint)
