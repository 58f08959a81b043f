"""CLI application for scripting Redshift databases."""

import sys

import typer

from rsscripter.cli.commands.script import script

app = typer.Typer(
    help="rsscripter - script a Redshift database to versionable SQL files",
    no_args_is_help=False,
    add_completion=False,
)

app.command()(script)


# Exit code click uses for usage errors (missing argument, bad option value).
USAGE_ERROR_EXIT_CODE = 2


def main() -> None:
    """Console entry point; argument errors exit with code 1."""
    try:
        app()
    except SystemExit as exc:
        if exc.code == USAGE_ERROR_EXIT_CODE:
            sys.exit(1)
        raise


if __name__ == "__main__":
    main()
