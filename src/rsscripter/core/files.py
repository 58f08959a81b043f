"""Writes generated scripts under the output directory and tracks every path."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Iterator, TextIO

from rsscripter.core.scripts import run_file_command

DATABASE_FILE = "Database.sql"
GROUPS_FILE = "Groups.sql"
SCHEMAS_FILE = "Schemas/Schemas.sql"
MASTER_FILE = "CreateDatabaseObjects.sql"
IGNORE_FILE = "IgnoreFiles.txt"


def table_path(schema: str, table: str) -> str:
    return f"Schemas/{schema}/Tables/{table}.sql"


def foreign_keys_path(schema: str, table: str) -> str:
    return f"Schemas/{schema}/Tables/{table}.fky.sql"


def table_data_path(schema: str, table: str) -> str:
    return f"Schemas/{schema}/Tables/Data/{table}.sql"


def view_headers_path(schema: str) -> str:
    return f"Schemas/{schema}/Views/Views.sql"


def view_path(schema: str, view: str) -> str:
    return f"Schemas/{schema}/Views/{view}.sql"


def normalize_path(path: str | PurePath) -> str:
    """Return a relative path with `/` separators."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text.strip("/")


@dataclass(frozen=True)
class ScriptFile:
    """
    A path tracked during the run.

    Attributes:
        path: Path relative to the output directory, `/`-separated.
        command: Directive that runs the file from the master script, or
                 None when the file is not part of the master script.
    """

    path: str
    command: str | None = None


class FileTracker:
    """
    Writes script files and records every relative path of the current run.

    Path lookups are case-insensitive. Files are overwritten unconditionally.
    """

    def __init__(self, root: Path, *, encoding: str = "utf-8") -> None:
        self.root = Path(root)
        self.encoding = encoding
        self._files: list[ScriptFile] = []
        self._keys: set[str] = set()

    def track(self, path: str | PurePath, *, run: bool = True) -> None:
        """
        Record a path.

        With `run=False` the path is only marked as expected and the master
        script does not run it.
        """
        rel = normalize_path(path)
        command = run_file_command(rel) if run else None
        self._files.append(ScriptFile(path=rel, command=command))
        self._keys.add(rel.casefold())

    def is_tracked(self, path: str | PurePath) -> bool:
        return normalize_path(path).casefold() in self._keys

    @contextmanager
    def open(self, path: str | PurePath, *, track: bool = True) -> Iterator[TextIO]:
        """Open a script file for writing, creating its directory first."""
        rel = normalize_path(path)
        if track:
            self.track(rel)
        target = self.root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding=self.encoding, newline="\n") as fh:
            yield fh

    def write(self, path: str | PurePath, text: str, *, track: bool = True) -> Path:
        """Write a whole script file."""
        with self.open(path, track=track) as fh:
            fh.write(text)
        return self.root / normalize_path(path)

    @property
    def files(self) -> list[ScriptFile]:
        return list(self._files)

    def run_commands(self) -> list[tuple[str, str]]:
        """`(path, command)` for every tracked file that the master script runs."""
        return [(f.path, f.command) for f in self._files if f.command is not None]
