"""Generate the script tree for a database model and reconcile the output directory.

The scripter writes files in dependency order and records each one so the
master script can replay the whole database:

    Database.sql
    Groups.sql                            (only with include_groups)
    Schemas/Schemas.sql
    Schemas/<schema>/Views/Views.sql      (placeholder views)
    Schemas/<schema>/Tables/<table>.sql
    Schemas/<schema>/Tables/Data/<table>.sql
    Schemas/<schema>/Views/<view>.sql
    Schemas/<schema>/Tables/<table>.fky.sql
    CreateDatabaseObjects.sql             (master script)
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Protocol, Sequence

from rsscripter.core import files, scripts
from rsscripter.core.errors import ConfigurationError
from rsscripter.core.files import FileTracker
from rsscripter.core.messages import MessageSink
from rsscripter.core.models import Database, Schema, Table
from rsscripter.core.quoting import QuoteMode
from rsscripter.core.reconcile import DecisionPolicy, DriftResult, Reconciler

DEFAULT_MAX_ROW_COUNT = 100_000


@dataclass(frozen=True)
class ScripterConfig:
    """
    Settings for one scripting run.

    Attributes:
        output_dir: Root of the generated script tree.
        max_row_count: Tables with more estimated rows are not exported.
        quote_mode: How identifiers are quoted.
        encoding: Encoding of every written file.
        include_groups: Also script the server's groups to Groups.sql.
    """

    output_dir: Path = field(default_factory=lambda: Path("."))
    max_row_count: int = DEFAULT_MAX_ROW_COUNT
    quote_mode: QuoteMode = QuoteMode.WHEN_NECESSARY
    encoding: str = "utf-8"
    include_groups: bool = False

    def __post_init__(self) -> None:
        if self.max_row_count <= 0:
            raise ConfigurationError("The maximum row count must be a positive number.")
        object.__setattr__(self, "output_dir", Path(self.output_dir))


class DataSource(Protocol):
    """Runs an export query and streams its rows."""

    def stream_rows(
        self, query: str
    ) -> AbstractContextManager[tuple[Sequence[scripts.ValueType], Iterator[Sequence[Any]]]]:
        """Yield the value type of each result column and an iterator of rows."""
        ...


class Scripter:
    """
    Writes every script for a database, then reconciles the output directory.

    When no data source is given, table data is not exported.
    """

    def __init__(
        self,
        config: ScripterConfig,
        *,
        sink: MessageSink,
        policy: DecisionPolicy,
        data_source: DataSource | None = None,
    ) -> None:
        self.config = config
        self.sink = sink
        self.policy = policy
        self.data_source = data_source
        self.tracker = FileTracker(config.output_dir, encoding=config.encoding)

    @property
    def mode(self) -> QuoteMode:
        return self.config.quote_mode

    def script(self, database: Database) -> list[DriftResult]:
        """Generate all files for the database and return the reconciliation results."""
        if database is None:
            raise ConfigurationError("A database is required.")
        self.tracker = FileTracker(self.config.output_dir, encoding=self.config.encoding)
        self.config.output_dir.mkdir(parents=True, exist_ok=True)

        self._write(files.DATABASE_FILE, scripts.render_database(database, self.mode))
        if self.config.include_groups:
            self._write(files.GROUPS_FILE, scripts.render_groups(database, self.mode))
        self._write(files.SCHEMAS_FILE, scripts.render_schemas(database, self.mode))
        for schema in database.schemas:
            self._script_view_headers(schema)
        foreign_key_files: list[str] = []
        for schema in database.schemas:
            for table in schema.tables:
                foreign_key_files.append(self._script_table(schema, table))
        for schema in database.schemas:
            self._script_views(schema)
        for path in foreign_key_files:
            self.tracker.track(path)

        self.tracker.write(
            files.MASTER_FILE,
            scripts.render_master_script(self.tracker.run_commands()),
            track=False,
        )
        self.tracker.track(files.MASTER_FILE, run=False)

        return Reconciler(self.tracker, self.policy, self.sink).run()

    def _write(self, path: str, text: str, *, track: bool = True) -> None:
        self.sink.progress(path)
        self.tracker.write(path, text, track=track)

    def _script_view_headers(self, schema: Schema) -> None:
        if not schema.views:
            return
        self._write(
            files.view_headers_path(schema.name),
            scripts.render_view_headers(schema.views, self.mode),
        )

    def _script_views(self, schema: Schema) -> None:
        for view in schema.views:
            self._write(files.view_path(schema.name, view.name), scripts.render_view(view, self.mode))

    def _script_table(self, schema: Schema, table: Table) -> str:
        """Write the table, its data and its foreign keys; return the foreign key path."""
        self._write(files.table_path(schema.name, table.name), scripts.render_table(table, self.mode))
        self._script_table_data(schema, table)
        path = files.foreign_keys_path(schema.name, table.name)
        # Tracked after the views so the master script adds foreign keys last.
        self._write(path, scripts.render_foreign_keys(table, self.mode), track=False)
        return path

    def _script_table_data(self, schema: Schema, table: Table) -> None:
        if table.estimated_row_count == 0 or self.data_source is None:
            return
        if table.estimated_row_count > self.config.max_row_count:
            self.sink.warning(
                f"Skipping data export of table {schema.name}.{table.name} because "
                f"the table has an estimated {table.estimated_row_count:,} rows. Any table "
                f"with more than {self.config.max_row_count:,} rows will be skipped."
            )
            return

        path = files.table_data_path(schema.name, table.name)
        self.sink.progress(path)
        query = scripts.build_select_command(table, self.config.max_row_count, self.mode)
        with self.data_source.stream_rows(query) as (value_types, rows):
            with self.tracker.open(path) as fh:
                for chunk in scripts.render_table_data(table, value_types, rows, self.mode):
                    fh.write(chunk)
