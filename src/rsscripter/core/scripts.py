"""Render catalog model objects as SQL script text.

Every function here is pure: it reads the model and returns text. File
placement, ordering and I/O belong to the scripter.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Sequence

from rsscripter.core.errors import CatalogShapeError
from rsscripter.core.models import (
    Column,
    Constraint,
    Database,
    DistributionStyle,
    Schema,
    Table,
    View,
)
from rsscripter.core.quoting import QuoteMode, quote_identifier

# A connection cannot create the database it is connected to, so the
# database script names the new database through a psql variable.
NEW_DATABASE_TOKEN = ":newdbname"

MAX_BATCH_SIZE = 1000
BATCH_DIVISOR = 511
BATCH_REMAINDER = 510

# See ACL_INSERT_CHR and friends in PostgreSQL's utils/acl.h.
# TRUNCATE (D) and TRIGGER (t) cannot be granted explicitly on Redshift.
PRIVILEGES = {
    "a": "INSERT",
    "r": "SELECT",
    "w": "UPDATE",
    "d": "DELETE",
    "x": "REFERENCES",
    "E": "EXECUTE",
    "U": "USAGE",
    "C": "CREATE",
    "T": "CREATE TEMP",
    "c": "CONNECT",
}


class ValueType(str, Enum):
    """Driver-reported type of an exported result column."""

    BIGINT = "bigint"
    BOOLEAN = "boolean"
    DOUBLE = "double"
    INTEGER = "integer"
    NUMERIC = "numeric"
    REAL = "real"
    SMALLINT = "smallint"
    CHAR = "char"
    DATE = "date"
    TEXT = "text"
    VARCHAR = "varchar"
    TIMESTAMP = "timestamp"


_VERBATIM_TYPES = frozenset(
    {
        ValueType.BIGINT,
        ValueType.BOOLEAN,
        ValueType.DOUBLE,
        ValueType.INTEGER,
        ValueType.NUMERIC,
        ValueType.REAL,
        ValueType.SMALLINT,
    }
)
_STRING_TYPES = frozenset({ValueType.CHAR, ValueType.TEXT, ValueType.VARCHAR})

_LINE_DELIMITER = ",\n\t"


@dataclass(frozen=True)
class AclEntry:
    """One `grantee=codes/grantor` item of an access control list."""

    grantee: str
    privilege_codes: str
    grantor: str | None = None


def string_literal(value: str) -> str:
    """Return a single-quoted SQL string literal."""
    return "'" + value.replace("'", "''").replace("\\", "\\\\") + "'"


def _statements(*blocks: str | None) -> str:
    """Join non-empty statement blocks with blank lines."""
    return "\n\n".join(b for b in blocks if b) + "\n"


# --------------------------------------------------------------------------
# Access control and descriptions
# --------------------------------------------------------------------------


def parse_acl(access_control_list: str | None) -> list[AclEntry]:
    """
    Parse a newline-delimited ACL and keep only the entries granted to groups.

    Entries are returned ordered by grantee.
    """
    if not access_control_list:
        return []
    entries: list[AclEntry] = []
    for raw in access_control_list.split("\n"):
        parts = re.split(r"[=/]", raw.strip())
        if len(parts) < 2:
            continue
        grantee = parts[0]
        if not grantee.lower().startswith("group "):
            continue
        grantor = parts[2] if len(parts) > 2 else None
        entries.append(AclEntry(grantee=grantee, privilege_codes=parts[1], grantor=grantor))
    return sorted(entries, key=lambda e: e.grantee)


def privileges_from_codes(codes: str) -> list[str]:
    """Map ACL privilege codes to SQL keywords, dropping codes that cannot be granted."""
    return [PRIVILEGES[code] for code in codes if code in PRIVILEGES]


def render_grants(granted_object: str, access_control_list: str | None) -> list[str]:
    """Return one GRANT statement per group entry of the ACL."""
    statements: list[str] = []
    for entry in parse_acl(access_control_list):
        privileges = privileges_from_codes(entry.privilege_codes)
        if not privileges:
            continue
        statements.append(
            f"GRANT {', '.join(privileges)} ON {granted_object} TO {entry.grantee};"
        )
    return statements


def render_comment(object_kind: str, object_name: str, description: str | None) -> str | None:
    if description is None:
        return None
    return f"COMMENT ON {object_kind} {object_name} IS {string_literal(description)};"


def render_column_comment(column: Column, mode: QuoteMode) -> str | None:
    return render_comment("COLUMN", column.qualified_name(mode), column.description)


# --------------------------------------------------------------------------
# Database, groups and schemas
# --------------------------------------------------------------------------


def render_database(database: Database, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Render the CREATE DATABASE bootstrap followed by a reconnect to it."""
    create = f"CREATE DATABASE {NEW_DATABASE_TOKEN}"
    if database.owner is not None:
        create += f" WITH OWNER {quote_identifier(database.owner, mode)}"
    create += ";"
    name = database.quoted_name(mode)
    return _statements(
        create,
        render_comment("DATABASE", name, database.description),
        *render_grants(f"DATABASE {name}", database.access_control_list),
        f"\\c {NEW_DATABASE_TOKEN}",
    )


def render_groups(database: Database, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    return _statements(*(f"CREATE GROUP {quote_identifier(g.name, mode)};" for g in database.groups))


def render_schema(schema: Schema, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Render CREATE SCHEMA with its description and grants."""
    name = schema.quoted_name(mode)
    create = f"CREATE SCHEMA {name}"
    if schema.owner is not None:
        create += f" AUTHORIZATION {quote_identifier(schema.owner, mode)}"
    create += ";"
    return _statements(
        create,
        render_comment("SCHEMA", name, schema.description),
        *render_grants(f"SCHEMA {name}", schema.access_control_list),
    )


def render_schemas(database: Database, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """
    Render all schemas of the database.

    The public schema exists in every new database, so it is never created.
    Only its description is scripted. When the source database has no public
    schema, the script drops it so the new database matches.
    """
    blocks: list[str | None] = []
    has_public = False
    for schema in database.schemas:
        if schema.name.lower() == "public":
            has_public = True
            blocks.append(render_comment("SCHEMA", schema.quoted_name(mode), schema.description))
        else:
            blocks.append(render_schema(schema, mode).rstrip("\n"))
    if not has_public:
        blocks.append("DROP SCHEMA public;")
    if not any(blocks):
        return ""
    return _statements(*blocks)


# --------------------------------------------------------------------------
# Tables and constraints
# --------------------------------------------------------------------------


def render_column_definition(column: Column, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Render `name<TAB>type<TAB>NULL|NOT NULL[<TAB>DEFAULT x][<TAB>ENCODE e]`."""
    parts = [column.quoted_name(mode), column.data_type]
    parts.append("NULL" if column.is_nullable else "NOT NULL")
    if column.default_value is not None:
        if column.default_value.upper().startswith("IDENTITY("):
            parts.append(column.default_value)
        else:
            parts.append(f"DEFAULT {column.default_value}")
    if column.has_compression_encoding:
        parts.append(f"ENCODE {column.compression_encoding.upper()}")
    return "\t".join(parts)


def render_create_table(table: Table, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Render the CREATE TABLE statement with distribution and sort keys."""
    columns = _LINE_DELIMITER.join(render_column_definition(c, mode) for c in table.columns)
    lines = [f"CREATE TABLE {table.qualified_name(mode)}", "(", f"\t{columns}", ")"]

    # EVEN is the default distribution style.
    if table.distribution_style == DistributionStyle.ALL:
        lines.append("DISTSTYLE ALL")
    elif table.distribution_style == DistributionStyle.KEY:
        key = table.distribution_key
        if key is None:
            raise CatalogShapeError(
                f"Table '{table}' uses KEY distribution but has no distribution key column."
            )
        lines.append(f"DISTKEY({key.quoted_name(mode)})")

    sort_keys = table.sort_keys()
    if sort_keys:
        lines.append(f"SORTKEY({', '.join(c.quoted_name(mode) for c in sort_keys)})")

    return "\n".join(lines) + ";"


def render_constraint(constraint: Constraint, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Render ALTER TABLE ... ADD CONSTRAINT plus the constraint description."""
    if constraint.parent is None:
        raise CatalogShapeError(f"Constraint '{constraint.name}' does not belong to a table.")
    table_name = constraint.parent.qualified_name(mode)
    statement = (
        f"ALTER TABLE {table_name} ADD CONSTRAINT "
        f"{constraint.quoted_name(mode)} {constraint.definition};"
    )
    comment = render_comment(
        "CONSTRAINT",
        f"{constraint.quoted_name(mode)} ON {table_name}",
        constraint.description,
    )
    return statement if comment is None else f"{statement}\n\n{comment}"


def render_table(table: Table, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """
    Render the table script.

    The script holds the CREATE TABLE, owner, descriptions, the primary key
    and unique constraints, and the grants. Foreign keys are rendered
    separately by `render_foreign_keys` so they can run after every table
    exists.
    """
    name = table.qualified_name(mode)
    owner = None
    if table.owner is not None:
        owner = f"ALTER TABLE {name} OWNER TO {quote_identifier(table.owner, mode)};"
    primary_key = table.primary_key
    return _statements(
        render_create_table(table, mode),
        owner,
        render_comment("TABLE", name, table.description),
        *(render_column_comment(c, mode) for c in table.columns),
        render_constraint(primary_key, mode) if primary_key is not None else None,
        *(render_constraint(c, mode) for c in table.unique_constraints()),
        *render_grants(f"TABLE {name}", table.access_control_list),
    )


def render_foreign_keys(table: Table, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Render the foreign key constraints of a table (empty text when there are none)."""
    constraints = table.foreign_key_constraints()
    if not constraints:
        return ""
    return _statements(*(render_constraint(c, mode) for c in constraints))


# --------------------------------------------------------------------------
# Views
# --------------------------------------------------------------------------


def render_view_header(view: View, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """
    Render a placeholder view with the real view's output columns.

    Placeholders have no dependencies, so every view can be created before
    any real definition runs.
    """
    columns = _LINE_DELIMITER.join(
        f"NULL::{c.data_type} AS {c.quoted_name(mode)}" for c in view.columns
    )
    return f"CREATE OR REPLACE VIEW {view.qualified_name(mode)}\nAS\nSELECT\n\t{columns};"


def render_view_headers(views: Iterable[View], mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    return _statements(*(render_view_header(v, mode) for v in views))


def render_view(view: View, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Render the real view definition with its owner, grants and description."""
    name = view.qualified_name(mode)
    definition = view.definition.strip()
    if not definition.endswith(";"):
        definition += ";"
    owner = None
    if view.owner is not None:
        # Redshift has no ALTER VIEW ... OWNER TO but accepts ALTER TABLE on a view.
        owner = f"ALTER TABLE {name} OWNER TO {quote_identifier(view.owner, mode)};"
    return _statements(
        f"CREATE OR REPLACE VIEW {name}\nAS\n{definition}",
        owner,
        *render_grants(name, view.access_control_list),
        render_comment("VIEW", name, view.description),
    )


# --------------------------------------------------------------------------
# Master script
# --------------------------------------------------------------------------


def run_file_command(path: str) -> str:
    """Return the psql directive that runs a script file."""
    return f"\\i '{path}'"


def render_master_script(files: Iterable[tuple[str, str]]) -> str:
    """Render the entry script from `(path, command)` pairs in execution order."""
    lines = ["\\set ON_ERROR_STOP on"]
    for path, command in files:
        lines.extend(["", f"\\echo '{path}'", command])
    return "\n".join(lines) + "\n"


# --------------------------------------------------------------------------
# Table data export
# --------------------------------------------------------------------------


def key_columns(table: Table) -> list[Column]:
    """Primary key columns, else the first unique constraint's columns, else all columns."""
    primary_key = table.primary_key
    if primary_key is not None and primary_key.columns:
        return list(primary_key.columns)
    for unique in table.unique_constraints():
        if unique.columns:
            return list(unique.columns)
    return list(table.columns)


def _column_list(columns: Iterable[Column], mode: QuoteMode, delimiter: str = ", ") -> str:
    return delimiter.join(c.quoted_name(mode) for c in columns)


def checksum_expression(columns: Sequence[Column], mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    """Return a CHECKSUM over the concatenated columns, with NULLs as empty strings."""
    parts = ["''"]
    for column in columns:
        name = column.quoted_name(mode)
        parts.append(f"COALESCE({name}, '')" if column.is_nullable else name)
    return f"CHECKSUM(({' || '.join(parts)})::varchar(max))"


def build_select_command(
    table: Table,
    max_row_count: int,
    mode: QuoteMode = QuoteMode.WHEN_NECESSARY,
) -> str:
    """
    Build the export query.

    The result has the table's columns followed by one checksum column that
    decides where INSERT batches split.
    """
    keys = key_columns(table)
    return (
        f"SELECT TOP {max_row_count} *,\n"
        f"\t{checksum_expression(keys, mode)}\n"
        f"FROM {table.qualified_name(mode)}\n"
        f"ORDER BY {_column_list(keys, mode)};\n"
    )


def build_insert_clause(table: Table, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
    return (
        f"INSERT INTO {table.qualified_name(mode)}\n"
        f"(\n\t{_column_list(table.columns, mode, _LINE_DELIMITER)}\n)"
    )


class BatchSplitter:
    """
    Decides which exported rows start a new INSERT batch.

    A batch ends after MAX_BATCH_SIZE rows, or earlier at any row whose
    checksum leaves BATCH_REMAINDER when divided by BATCH_DIVISOR. The
    remainder keeps the sign of the checksum, so negative checksums never
    split a batch early.
    """

    def __init__(self) -> None:
        self.row_count = 0

    def starts_batch(self, checksum: int) -> bool:
        start = (
            math.fmod(checksum, BATCH_DIVISOR) == BATCH_REMAINDER
            or self.row_count % MAX_BATCH_SIZE == 0
        )
        if start:
            self.row_count = 0
        self.row_count += 1
        return start


def format_literal(value: Any, value_type: ValueType) -> str:
    """Render an exported value as a SQL literal for its column type."""
    if value is None:
        return "NULL"
    if value_type in _VERBATIM_TYPES:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    if value_type in _STRING_TYPES:
        return string_literal(str(value))
    if value_type == ValueType.DATE:
        return f"'{value:%Y-%m-%d}'"
    if value_type == ValueType.TIMESTAMP:
        return f"'{value:%Y-%m-%d %H:%M:%S}.{value.microsecond // 1000:03d}'"
    raise CatalogShapeError(f"Unsupported data export value type: {value_type!r}")


def render_table_data(
    table: Table,
    value_types: Sequence[ValueType],
    rows: Iterable[Sequence[Any]],
    mode: QuoteMode = QuoteMode.WHEN_NECESSARY,
) -> Iterator[str]:
    """
    Stream the data script for rows produced by `build_select_command`.

    Each row holds the table's column values followed by the batch checksum.
    The script ends with VACUUM and ANALYZE of the table.
    """
    insert_clause = build_insert_clause(table, mode)
    column_count = len(table.columns)
    if len(value_types) < column_count:
        raise CatalogShapeError(
            f"Export of '{table}' returned {len(value_types)} columns, expected {column_count}."
        )
    splitter = BatchSplitter()
    first_batch = True
    for row in rows:
        if splitter.starts_batch(int(row[-1])):
            if not first_batch:
                yield ";\n"
            first_batch = False
            yield f"\n{insert_clause} VALUES\n(\n\t"
        else:
            yield ",\n(\n\t"
        yield _LINE_DELIMITER.join(format_literal(row[i], value_types[i]) for i in range(column_count))
        yield "\n)"

    name = table.qualified_name(mode)
    if not first_batch:
        yield ";\n"
    yield f"\nVACUUM {name};\n\nANALYZE {name};\n"
