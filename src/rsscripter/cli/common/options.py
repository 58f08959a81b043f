"""Common CLI options for the CLI."""

import typer

from rsscripter.core.scripter import DEFAULT_MAX_ROW_COUNT

ConnectionArg = typer.Argument(
    ...,
    help="SQLAlchemy connection URL, e.g. postgresql://user@host:5439/dbname",
    show_default=False,
)

OutputDirArg = typer.Argument(
    None,
    help="Directory to write the scripts to (default: current directory)",
    show_default=False,
)

ForceDeleteOpt = typer.Option(
    False,
    "--force-delete",
    "-f",
    help="Delete extra files and empty directories without asking",
)

ForceKeepOpt = typer.Option(
    False,
    "--force-keep",
    "-n",
    help="Keep extra files and empty directories without asking",
)

MaxRowsOpt = typer.Option(
    DEFAULT_MAX_ROW_COUNT,
    "--max-rows",
    min=1,
    help="Skip the data export of tables with more estimated rows than this",
)

QuoteAllOpt = typer.Option(
    False,
    "--quote-all",
    help="Quote every identifier instead of only the ones that need it",
)

GroupsOpt = typer.Option(
    False,
    "--groups",
    help="Also script the server's groups to Groups.sql",
)
