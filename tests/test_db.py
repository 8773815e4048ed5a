import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from broadcaster.db import Database
from broadcaster.models import DispatchOutcome, ErrorKind, Target


def test_record_run_and_read_back(tmp_path):
    db = Database(tmp_path / "broadcaster.db")
    db.initialize()

    started = datetime.now(timezone.utc) - timedelta(seconds=10)
    outcomes = [
        DispatchOutcome(target=Target.chat(1), success=True, message_id="501"),
        DispatchOutcome(
            target=Target.group("team"),
            success=False,
            error_kind=ErrorKind.RATE_LIMITED,
            wait_seconds=5,
            error="Too Many Requests",
        ),
    ]
    run_id = db.record_run(started, outcomes)
    assert run_id > 0

    runs = db.recent_runs(limit=5)
    assert len(runs) == 1
    assert runs[0]["total"] == 2
    assert runs[0]["succeeded"] == 1

    rows = db.outcomes_for_run(run_id)
    assert [row["target"] for row in rows] == ["chat 1", "group @team"]
    assert rows[0]["message_id"] == "501"
    assert rows[1]["error_kind"] == "RateLimited"
    assert rows[1]["wait_seconds"] == 5


def test_recent_runs_newest_first(tmp_path):
    db = Database(tmp_path / "broadcaster.db")
    db.initialize()
    now = datetime.now(timezone.utc)

    first = db.record_run(now, [])
    second = db.record_run(now, [DispatchOutcome(target=Target.chat(2), success=True, message_id="9")])

    assert [run["id"] for run in db.recent_runs(limit=10)] == [second, first]
    assert db.outcomes_for_run(first) == []


def test_initialize_is_repeatable(tmp_path):
    db = Database(tmp_path / "broadcaster.db")
    db.initialize()
    db.initialize()
    assert db.recent_runs() == []


def test_initialize_rejects_other_schema_version(tmp_path):
    path = tmp_path / "broadcaster.db"
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA user_version = 7")
    conn.close()

    with pytest.raises(RuntimeError, match="schema version 7"):
        Database(path).initialize()


def test_outcomes_require_existing_run(tmp_path):
    db = Database(tmp_path / "broadcaster.db")
    db.initialize()

    with pytest.raises(sqlite3.IntegrityError):
        with db._connect() as conn:
            conn.execute(
                """
                INSERT INTO dispatch_outcomes(run_id, position, target, success, sent_at)
                VALUES (999, 0, 'chat 1', 1, '2026-10-18T00:00:00+00:00')
                """
            )
