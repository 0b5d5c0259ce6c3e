import dataclasses

from irr import db


def test_log_event_and_latest_events_newest_first():
    db.log_event("info", "first")
    db.log_event("warn", "second", service_name="kafka")

    rows = db.latest_events(10)

    assert [r["message"] for r in rows] == ["second", "first"]
    assert rows[0]["level"] == "WARN"
    assert rows[0]["service_name"] == "kafka"
    assert rows[1]["service_name"] is None


def test_latest_events_limit():
    for i in range(5):
        db.log_event("INFO", f"e{i}")
    assert len(db.latest_events(2)) == 2


def test_directory_path_gets_db_file_inside(tmp_path, monkeypatch):
    target = tmp_path / "data"
    target.mkdir()
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=str(target)))

    db.log_event("INFO", "hello")

    assert (target / "irr.db").is_file()
