from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _no_user_pgpass(monkeypatch, tmp_path_factory):
    """Keep credential lookups away from the developer's own password file."""
    monkeypatch.setenv("PGPASSFILE", str(tmp_path_factory.mktemp("pgpass") / "absent"))
