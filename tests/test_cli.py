import sys
from contextlib import nullcontext
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from rsscripter.cli import cli
from rsscripter.cli.commands import script as script_command
from rsscripter.cli.common.context import RunContext
from rsscripter.core.errors import CatalogShapeError
from rsscripter.core.files import MASTER_FILE
from rsscripter.core.models import Column, Database, Schema, Table

runner = CliRunner()

URL = "postgresql://etl@cluster:5439/sales"


def _database() -> Database:
    database = Database(name="sales")
    public = database.schemas.add(Schema(name="public"))
    table = public.tables.add(Table(name="orders"))
    table.columns.add(Column(name="id", data_type="integer", is_nullable=False))
    return database


@pytest.fixture
def fake_connection(monkeypatch):
    """Replace the engine with one whose connections do nothing."""
    engine = SimpleNamespace(connect=lambda: nullcontext(object()), dispose=lambda: None)
    monkeypatch.setattr(
        script_command,
        "build_run_context",
        lambda connection: RunContext(database_name="sales", engine=engine),
    )
    return engine


def test_force_flags_are_mutually_exclusive(tmp_path):
    result = runner.invoke(cli.app, [URL, str(tmp_path), "--force-delete", "--force-keep"])

    assert result.exit_code == 1
    assert "not both" in result.output


def test_url_without_database_exits_with_error(tmp_path):
    result = runner.invoke(cli.app, ["postgresql://etl@cluster:5439", str(tmp_path), "-f"])

    assert result.exit_code == 1
    assert "does not name a database" in result.output


def test_scripts_database_with_forced_policy(tmp_path, monkeypatch, fake_connection):
    monkeypatch.setattr(script_command, "load_database", lambda adapter, name: _database())
    stale = tmp_path / "Schemas/public/Tables/old.sql"
    stale.parent.mkdir(parents=True)
    stale.write_text("")

    result = runner.invoke(cli.app, [URL, str(tmp_path), "-f"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / MASTER_FILE).exists()
    assert (tmp_path / "Schemas/public/Tables/orders.sql").exists()
    assert not stale.exists()
    # Database, schemas, table and foreign key scripts plus the master script.
    assert "Scripted 5 file(s)" in result.output


def test_catalog_errors_exit_with_error(tmp_path, monkeypatch, fake_connection):
    def _fail(adapter, name):
        raise CatalogShapeError("Unrecognized constraint type: 'c'")

    monkeypatch.setattr(script_command, "load_database", _fail)

    result = runner.invoke(cli.app, [URL, str(tmp_path), "-n"])

    assert result.exit_code == 1
    assert "Unrecognized constraint type" in result.output


def test_missing_arguments_exit_with_code_one(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["rsscripter"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1


def test_invalid_row_limit_exits_with_code_one(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["rsscripter", URL, "--max-rows", "0"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1


def test_unknown_option_exits_with_code_one(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["rsscripter", URL, "--no-such-option"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1


def test_command_errors_keep_their_exit_code(monkeypatch, tmp_path):
    monkeypatch.setattr(
        sys, "argv", ["rsscripter", URL, str(tmp_path), "--force-delete", "--force-keep"]
    )

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1
