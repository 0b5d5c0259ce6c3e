import dataclasses
import os as _os
import sys

import pytest

# Ensure project root is importable (so `import cli` works without installing)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from irr import alerts, db  # noqa: E402


@pytest.fixture(autouse=True)
def event_db(tmp_path, monkeypatch):
    """Point the event log at a throwaway sqlite file and keep email off."""
    path = tmp_path / "events.db"
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=str(path)))
    monkeypatch.setattr(alerts, "settings", dataclasses.replace(alerts.settings, enable_email=False))
    return path
