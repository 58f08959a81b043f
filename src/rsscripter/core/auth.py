"""Connection helpers for Redshift.

This module turns the connection string given on the command line into a
SQLAlchemy engine. When the URL carries no password, it is looked up in
the libpq password file the same way psql does, so scripted runs do not
need credentials on the command line.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError

from rsscripter.core.errors import ConfigurationError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5432


class AuthError(RuntimeError):
    """Raised when credentials cannot be resolved."""


@dataclass(frozen=True)
class PgPassEntry:
    """One `host:port:database:username:password` line of a password file."""

    host: str
    port: str
    database: str
    username: str
    password: str

    @classmethod
    def parse(cls, line: str, *, line_number: int = 0) -> PgPassEntry:
        """Split a line on unescaped `:`; `\\` escapes the next character."""
        fields: list[str] = []
        current: list[str] = []
        escaped = False
        for char in line:
            if escaped:
                current.append(char)
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == ":" and len(fields) < 4:
                fields.append("".join(current))
                current = []
            else:
                current.append(char)
        fields.append("".join(current))
        if len(fields) != 5:
            raise AuthError(
                f"Password file entry on line {line_number} does not have the form "
                "host:port:database:username:password."
            )
        return cls(*fields)

    def matches(self, host: str, port: str, database: str, username: str) -> bool:
        return (
            _field_matches(self.host, host)
            and _field_matches(self.port, port, case_sensitive=True)
            and _field_matches(self.database, database)
            and _field_matches(self.username, username)
        )


def _field_matches(pattern: str, value: str, *, case_sensitive: bool = False) -> bool:
    if pattern == "*":
        return True
    if case_sensitive:
        return pattern == value
    return pattern.casefold() == value.casefold()


def pgpass_path() -> Path:
    """Return the password file location: PGPASSFILE, else the platform default."""
    override = os.getenv("PGPASSFILE")
    if override:
        return Path(override)
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA", "")
        return Path(appdata) / "postgresql" / "pgpass.conf"
    return Path.home() / ".pgpass"


def read_pgpass(path: Path) -> list[PgPassEntry]:
    """Parse a password file, skipping blank lines and `#` comments."""
    entries: list[PgPassEntry] = []
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        entries.append(PgPassEntry.parse(line, line_number=number))
    return entries


def parse_url(connection_string: str) -> URL:
    try:
        return make_url(connection_string)
    except ArgumentError as exc:
        raise ConfigurationError(f"Invalid connection string: {exc}") from exc


def database_name_from_url(connection_string: str | URL) -> str:
    """Return the database named in the URL; a missing name is a configuration error."""
    url = connection_string if isinstance(connection_string, URL) else parse_url(connection_string)
    if not url.database:
        raise ConfigurationError(
            "The connection string does not name a database (expected .../<database>)."
        )
    return url.database


def resolve_password(connection_string: str | URL, path: Path | None = None) -> URL:
    """
    Fill in the password from the password file when the URL has none.

    The first entry matching host, port, database and user wins. A URL
    that already has a password, or for which no entry matches, is
    returned unchanged.
    """
    url = connection_string if isinstance(connection_string, URL) else parse_url(connection_string)
    if url.password:
        return url

    path = path or pgpass_path()
    if not path.is_file():
        return url

    host = url.host or DEFAULT_HOST
    port = str(url.port or DEFAULT_PORT)
    database = url.database or ""
    username = url.username or os.getenv("PGUSER") or ""
    for entry in read_pgpass(path):
        if entry.matches(host, port, database, username):
            if username and not url.username:
                url = url.set(username=username)
            return url.set(password=entry.password)
    return url


def get_engine(connection_string: str) -> Engine:
    """
    Create a SQLAlchemy engine for the given connection string.

    The database name is validated and the password resolved before the
    engine is created, so configuration problems surface before any
    connection is opened.
    """
    url = parse_url(connection_string)
    database_name_from_url(url)
    return create_engine(resolve_password(url))
