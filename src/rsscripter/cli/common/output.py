"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from rsscripter.cli.common.tui_style import (
    QUESTIONARY_STYLE_CONFIRM,
    QUESTIONARY_STYLE_SELECT,
)

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer",):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        """Prefix Questionary prompts with the tool name."""
        return f"[RS-SCRIPTER] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def print(self, msg: str) -> None:
        """Print a raw Rich-formatted message to the console."""
        console.print(msg)

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {escape(str(v))}")

    def select_one(
        self,
        message: str,
        choices: list[Any],
        *,
        destructive: bool = False,
    ) -> Any | None:
        """
        Prompt the user to select a single item from a list (radio list).

        Choices may be plain strings or `questionary.Choice` objects.

        Returns:
            The selected value, or None if cancelled.
        """
        if not choices:
            return None

        prompt = self._q_try(
            questionary.select,
            self._q(message),
            choices=choices,
            style=QUESTIONARY_STYLE_CONFIRM if destructive else QUESTIONARY_STYLE_SELECT,
            qmark="✦",
            instruction="Use ↑/↓ then Enter",
            pointer="❯",
        )
        return prompt.ask()

    def drift_results_table(
        self, results: Iterable[Any], title: str = "Reconciliation results"
    ) -> None:
        """
        Render the outcome of reconciling the output directory.

        Expects objects with `.path`, `.kind`, `.decision`, `.ok` and an
        optional `.error` (like rsscripter.core.reconcile.DriftResult).
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Path", style="ok")
        t.add_column("Kind", style="meta")
        t.add_column("Decision")
        t.add_column("Result")

        for r in results:
            kind = getattr(r, "kind", "")
            decision = getattr(r, "decision", "")
            ok = bool(getattr(r, "ok", False))
            err = getattr(r, "error", None)
            t.add_row(
                escape(str(getattr(r, "path", ""))),
                str(getattr(kind, "value", kind)),
                str(getattr(decision, "value", decision)),
                "[ok]OK[/]" if ok else f"[err]FAIL[/] {escape(str(err or ''))}",
            )

        console.print(t)


out = Out()


class ConsoleSink:
    """Message sink that renders scripter messages through `out`."""

    def progress(self, message: str) -> None:
        out.print(f"[meta]{escape(message)}[/]")

    def output(self, message: str) -> None:
        out.info(escape(message))

    def warning(self, message: str) -> None:
        out.warn(escape(message))

    def error(self, message: str) -> None:
        out.error(escape(message))
