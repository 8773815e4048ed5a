"""SQLite persistence for dispatch run history."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Sequence

from broadcaster.models import DispatchOutcome

SCHEMA_VERSION = 1


class Database:
    """Dispatch run history kept in a single SQLite file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the run-history tables, or check an existing file's version."""

        with self._connect() as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version == 0:
                self._create_schema(conn)
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            elif version != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Run history {self._path} has schema version {version}, expected {SCHEMA_VERSION}"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS dispatch_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                started_at TEXT NOT NULL,
                finished_at TEXT NOT NULL,
                total INTEGER NOT NULL,
                succeeded INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS dispatch_outcomes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id INTEGER NOT NULL,
                position INTEGER NOT NULL,
                target TEXT NOT NULL,
                success INTEGER NOT NULL,
                message_id TEXT,
                error_kind TEXT,
                wait_seconds INTEGER,
                error TEXT,
                sent_at TEXT NOT NULL,
                FOREIGN KEY(run_id) REFERENCES dispatch_runs(id)
            );
            """
        )

    def record_run(self, started_at: datetime, outcomes: Sequence[DispatchOutcome]) -> int:
        """Persist one dispatch run and its per-target outcomes."""

        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO dispatch_runs(started_at, finished_at, total, succeeded)
                VALUES (?, ?, ?, ?)
                """,
                (
                    started_at.astimezone(timezone.utc).isoformat(),
                    _utc_now_iso(),
                    len(outcomes),
                    sum(1 for o in outcomes if o.success),
                ),
            )
            run_id = int(cur.lastrowid)
            conn.executemany(
                """
                INSERT INTO dispatch_outcomes(
                    run_id, position, target, success, message_id, error_kind, wait_seconds, error, sent_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        run_id,
                        position,
                        outcome.target.label,
                        int(outcome.success),
                        outcome.message_id,
                        outcome.error_kind.value if outcome.error_kind else None,
                        outcome.wait_seconds,
                        outcome.error,
                        outcome.timestamp.astimezone(timezone.utc).isoformat(),
                    )
                    for position, outcome in enumerate(outcomes)
                ],
            )
            return run_id

    def recent_runs(self, limit: int = 10) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, started_at, finished_at, total, succeeded
                FROM dispatch_runs
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    def outcomes_for_run(self, run_id: int) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT position, target, success, message_id, error_kind, wait_seconds, error, sent_at
                FROM dispatch_outcomes
                WHERE run_id = ?
                ORDER BY position ASC
                """,
                (run_id,),
            ).fetchall()
        return [dict(row) for row in rows]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
