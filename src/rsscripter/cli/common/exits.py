"""Exit handling utilities for the CLI."""

from typing import NoReturn

import typer
from rich.markup import escape

from rsscripter.cli.common.output import out


def die(msg: str, code: int = 1) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(escape(msg))
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str, code: int = 1) -> NoReturn:
    """
    Print an error message and exit with a given code, chaining the cause.

    Standardizes error exits for exceptions raised by the core.
    """
    out.error(escape(message))
    raise typer.Exit(code) from exc
