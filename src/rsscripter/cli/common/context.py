"""Application context management for the CLI."""

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from rsscripter.cli.common.exits import die
from rsscripter.core.auth import AuthError, database_name_from_url, get_engine
from rsscripter.core.errors import ConfigurationError


@dataclass
class RunContext:
    """Application context holding the engine and the name of the database to script."""

    database_name: str
    engine: Engine


def build_run_context(connection_string: str) -> RunContext:
    """Build the run context from the connection URL.

    Args:
        connection_string: SQLAlchemy URL naming the database to script.

    Returns:
        RunContext: Context with a configured (not yet connected) engine.
    """
    try:
        database_name = database_name_from_url(connection_string)
        engine = get_engine(connection_string)
    except (AuthError, ConfigurationError) as exc:
        die(str(exc), code=1)
    return RunContext(database_name=database_name, engine=engine)
