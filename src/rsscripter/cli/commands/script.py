from __future__ import annotations

from pathlib import Path

from rich.markup import escape
from sqlalchemy.exc import SQLAlchemyError

from rsscripter.cli.common.context import build_run_context
from rsscripter.cli.common.exits import die, exit_from_exc
from rsscripter.cli.common.options import (
    ConnectionArg,
    ForceDeleteOpt,
    ForceKeepOpt,
    GroupsOpt,
    MaxRowsOpt,
    OutputDirArg,
    QuoteAllOpt,
)
from rsscripter.cli.common.output import ConsoleSink, out
from rsscripter.cli.tui import InteractivePolicy
from rsscripter.core.adapters.redshift import RedshiftAdapter
from rsscripter.core.catalog import load_database
from rsscripter.core.errors import ScripterError
from rsscripter.core.quoting import QuoteMode
from rsscripter.core.reconcile import Decision, DecisionPolicy, ForcedPolicy
from rsscripter.core.scripter import Scripter, ScripterConfig


def _policy(force_delete: bool, force_keep: bool) -> DecisionPolicy:
    if force_delete and force_keep:
        die("Use either --force-delete or --force-keep, not both.", code=1)
    if force_delete:
        return ForcedPolicy(Decision.DELETE)
    if force_keep:
        return ForcedPolicy(Decision.KEEP)
    return InteractivePolicy()


def script(
    connection: str = ConnectionArg,
    output_dir: Path | None = OutputDirArg,
    force_delete: bool = ForceDeleteOpt,
    force_keep: bool = ForceKeepOpt,
    max_rows: int = MaxRowsOpt,
    quote_all: bool = QuoteAllOpt,
    groups: bool = GroupsOpt,
):
    """Script a Redshift database to a directory of versionable SQL files."""
    policy = _policy(force_delete, force_keep)
    try:
        config = ScripterConfig(
            output_dir=output_dir or Path.cwd(),
            max_row_count=max_rows,
            quote_mode=QuoteMode.ALWAYS if quote_all else QuoteMode.WHEN_NECESSARY,
            include_groups=groups,
        )
    except ScripterError as exc:
        exit_from_exc(exc, message=str(exc), code=1)

    appctx = build_run_context(connection)
    out.header(f"Scripting database {escape(appctx.database_name)}")
    out.kv({"Output directory": config.output_dir.resolve()})

    try:
        with appctx.engine.connect() as conn:
            adapter = RedshiftAdapter(conn)
            with out.status("Reading catalog..."):
                database = load_database(adapter, appctx.database_name)
            scripter = Scripter(config, sink=ConsoleSink(), policy=policy, data_source=adapter)
            results = scripter.script(database)
    except ScripterError as exc:
        exit_from_exc(exc, message=str(exc), code=1)
    except SQLAlchemyError as exc:
        exit_from_exc(exc, message=f"Database error: {exc}", code=1)
    except OSError as exc:
        exit_from_exc(exc, message=f"Could not write scripts: {exc}", code=1)
    finally:
        appctx.engine.dispose()

    if results:
        out.drift_results_table(results)
        failed = [r for r in results if not r.ok]
        if failed:
            out.warn(f"{len(failed)} item(s) could not be deleted.")
    # Files run by the master script, plus the master script itself.
    scripted = len(scripter.tracker.run_commands()) + 1
    out.success(f"Scripted {scripted} file(s) to {escape(str(config.output_dir))}")
