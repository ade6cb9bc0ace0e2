"""SQLiteFreezeStore - relational store for freezes and unlock overrides.

Schema mirrors the freeze_records / unlocked_prs tables of the hosted bot:
  freeze_records  - one row per freeze window (branch NULL = all branches)
  unlocked_prs    - one row per (installation_id, repository, pr_number)

Timestamps are stored as fixed-width UTC ISO strings so that text comparison
in SQL orders them correctly. create_freeze runs the overlap query and the
insert inside one BEGIN IMMEDIATE transaction, which takes the database
write lock before the check and removes the check-then-insert window even
across processes sharing the file.
"""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from freezebot.errors import OverlapError, StoreError
from freezebot.models import FreezeRecord, FreezeStatus, UnlockedPr
from freezebot.store.base import FreezeStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS freeze_records (
    id              TEXT PRIMARY KEY,
    repository      TEXT NOT NULL,
    installation_id INTEGER NOT NULL,
    started_at      TEXT NOT NULL,
    expires_at      TEXT,
    ended_at        TEXT,
    reason          TEXT,
    initiated_by    TEXT NOT NULL,
    ended_by        TEXT,
    branch          TEXT,
    status          TEXT NOT NULL DEFAULT 'active',
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_freeze_records_repo ON freeze_records (repository, status);
CREATE INDEX IF NOT EXISTS idx_freeze_records_installation ON freeze_records (installation_id);
CREATE INDEX IF NOT EXISTS idx_freeze_records_branch ON freeze_records (repository, branch, status);

CREATE TABLE IF NOT EXISTS unlocked_prs (
    repository      TEXT NOT NULL,
    installation_id INTEGER NOT NULL,
    pr_number       INTEGER NOT NULL,
    unlocked_by     TEXT NOT NULL,
    unlocked_at     TEXT NOT NULL,
    UNIQUE (installation_id, repository, pr_number)
);
CREATE INDEX IF NOT EXISTS idx_unlocked_prs_repo ON unlocked_prs (installation_id, repository);
"""

_OVERLAP_SQL = """
SELECT id FROM freeze_records
WHERE installation_id = ?
  AND repository = ?
  AND status IN ('active', 'scheduled')
  AND (expires_at IS NULL OR ? < expires_at)
  AND (? IS NULL OR started_at < ?)
LIMIT 1
"""


def _ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class SQLiteFreezeStore(FreezeStore):
    """Stores freezes in a local SQLite database file.

    The connection is shared between threads and guarded by a lock; the
    synchronizer's worker threads only read unlocks through it.
    """

    def __init__(self, db_path: str = ".freezebot.db"):
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open freeze database {db_path}: {e}") from e

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self._conn
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise StoreError(f"Freeze database error: {e}") from e

    def _fetch(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Freeze database error: {e}") from e

    # ------------------------------------------------------------------ #
    # Freeze records                                                       #
    # ------------------------------------------------------------------ #

    def create_freeze(self, record: FreezeRecord) -> FreezeRecord:
        start, end = _ts(record.started_at), _ts(record.expires_at)
        with self._transaction() as conn:
            row = conn.execute(
                _OVERLAP_SQL,
                (record.installation_id, record.repository, start, end, end),
            ).fetchone()
            if row is not None:
                raise OverlapError(record.repository, row["id"])
            conn.execute(
                """
                INSERT INTO freeze_records
                  (id, repository, installation_id, started_at, expires_at, ended_at,
                   reason, initiated_by, ended_by, branch, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.repository,
                    record.installation_id,
                    start,
                    end,
                    _ts(record.ended_at),
                    record.reason,
                    record.initiated_by,
                    record.ended_by,
                    record.branch,
                    record.status.value,
                    _ts(record.created_at),
                ),
            )
        return record

    def get_freeze(self, freeze_id: str) -> FreezeRecord | None:
        rows = self._fetch("SELECT * FROM freeze_records WHERE id=?", (freeze_id,))
        return self._row_to_freeze(rows[0]) if rows else None

    def list_freezes(
        self,
        installation_id: int | None = None,
        repository: str | None = None,
        active_only: bool = False,
    ) -> list[FreezeRecord]:
        query = "SELECT * FROM freeze_records WHERE 1=1"
        params: list = []
        if installation_id is not None:
            query += " AND installation_id = ?"
            params.append(installation_id)
        if repository is not None:
            query += " AND repository = ?"
            params.append(repository)
        if active_only:
            query += " AND status = 'active'"
        query += " ORDER BY created_at DESC"
        return [self._row_to_freeze(r) for r in self._fetch(query, tuple(params))]

    def update_status(
        self,
        freeze_id: str,
        status: FreezeStatus,
        ended_by: str | None = None,
        ended_at: datetime | None = None,
    ) -> FreezeRecord | None:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE freeze_records SET status=?, ended_by=?, ended_at=? WHERE id=?",
                (status.value, ended_by, _ts(ended_at), freeze_id),
            )
            if cur.rowcount == 0:
                return None
        logger.info("Freeze %s status -> %s", freeze_id, status.value)
        return self.get_freeze(freeze_id)

    def delete_freeze(self, freeze_id: str) -> bool:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM freeze_records WHERE id=?", (freeze_id,))
            return cur.rowcount > 0

    def get_active_freeze(self, installation_id: int, repository: str) -> FreezeRecord | None:
        rows = self._fetch(
            """
            SELECT * FROM freeze_records
            WHERE installation_id=? AND repository=? AND status='active'
            ORDER BY started_at DESC LIMIT 1
            """,
            (installation_id, repository),
        )
        return self._row_to_freeze(rows[0]) if rows else None

    def list_active_freezes(self) -> list[FreezeRecord]:
        rows = self._fetch("SELECT * FROM freeze_records WHERE status='active' ORDER BY started_at ASC")
        return [self._row_to_freeze(r) for r in rows]

    def list_scheduled_due(self, now: datetime) -> list[FreezeRecord]:
        rows = self._fetch(
            "SELECT * FROM freeze_records WHERE status='scheduled' AND started_at <= ? ORDER BY started_at ASC",
            (_ts(now),),
        )
        return [self._row_to_freeze(r) for r in rows]

    def list_expired_active(self, now: datetime) -> list[FreezeRecord]:
        rows = self._fetch(
            """
            SELECT * FROM freeze_records
            WHERE status='active' AND expires_at IS NOT NULL AND expires_at <= ?
            ORDER BY expires_at ASC
            """,
            (_ts(now),),
        )
        return [self._row_to_freeze(r) for r in rows]

    # ------------------------------------------------------------------ #
    # Unlock overrides                                                     #
    # ------------------------------------------------------------------ #

    def upsert_unlock(self, unlock: UnlockedPr) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO unlocked_prs
                  (repository, installation_id, pr_number, unlocked_by, unlocked_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    unlock.repository,
                    unlock.installation_id,
                    unlock.pr_number,
                    unlock.unlocked_by,
                    _ts(unlock.unlocked_at),
                ),
            )

    def get_unlock(self, installation_id: int, repository: str, pr_number: int) -> UnlockedPr | None:
        rows = self._fetch(
            "SELECT * FROM unlocked_prs WHERE installation_id=? AND repository=? AND pr_number=?",
            (installation_id, repository, pr_number),
        )
        return self._row_to_unlock(rows[0]) if rows else None

    def list_unlocked(self, installation_id: int, repository: str) -> list[UnlockedPr]:
        rows = self._fetch(
            "SELECT * FROM unlocked_prs WHERE installation_id=? AND repository=? ORDER BY pr_number",
            (installation_id, repository),
        )
        return [self._row_to_unlock(r) for r in rows]

    def clear_unlocks(self, installation_id: int, repository: str) -> int:
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM unlocked_prs WHERE installation_id=? AND repository=?",
                (installation_id, repository),
            )
            return cur.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_freeze(row: sqlite3.Row) -> FreezeRecord:
        return FreezeRecord(
            id=row["id"],
            repository=row["repository"],
            installation_id=row["installation_id"],
            started_at=row["started_at"],
            expires_at=row["expires_at"],
            ended_at=row["ended_at"],
            reason=row["reason"],
            initiated_by=row["initiated_by"],
            ended_by=row["ended_by"],
            branch=row["branch"],
            status=FreezeStatus(row["status"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_unlock(row: sqlite3.Row) -> UnlockedPr:
        return UnlockedPr(
            installation_id=row["installation_id"],
            repository=row["repository"],
            pr_number=row["pr_number"],
            unlocked_by=row["unlocked_by"],
            unlocked_at=row["unlocked_at"],
        )
