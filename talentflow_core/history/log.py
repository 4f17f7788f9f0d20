"""
Pipeline History Log — append-only audit trail of stage changes and notes.

Behavioral Contract:
- Append-only. No entry is ever modified or deleted.
- Each record is hashed and chained to the previous record (tamper-evident).
- read() returns an entity's entries ordered by timestamp, ties broken by
  append order.
- Notes are accepted unconditionally. Stage changes are appended only by
  the pipeline service, after the transition has been committed.
"""

import hashlib
import json
import sqlite3
from typing import List, Optional

from talentflow_core.models.history import (
    HistoryEntry,
    HistoryRecord,
    NoteEntry,
    StageChangeEntry,
)


class PipelineHistoryLog:
    """
    Append-only history log.
    Backed by SQLite; ":memory:" keeps it for the life of the process.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the history table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_id INTEGER NOT NULL,
                kind TEXT NOT NULL,
                ts REAL NOT NULL,
                signature TEXT NOT NULL,
                prior_record_hash TEXT,
                record_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_history_entity ON history(entity_id, ts, seq)
        """)
        self._conn.commit()

    def append(self, entity_id: int, entry: HistoryEntry) -> HistoryRecord:
        """Append one entry and chain it to the previous record."""
        if not isinstance(entry, (StageChangeEntry, NoteEntry)):
            raise TypeError(f"Unsupported history entry: {type(entry).__name__}")

        seq = self._next_seq()
        record = HistoryRecord(
            seq=seq,
            entity_id=entity_id,
            entry=entry,
            prior_record_hash=self._get_latest_hash(),
        )
        record.signature = _sign(record)

        self._conn.execute(
            """
            INSERT INTO history (
                seq, entity_id, kind, ts, signature, prior_record_hash, record_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                seq,
                entity_id,
                entry.type,
                entry.timestamp.timestamp(),
                record.signature,
                record.prior_record_hash,
                record.model_dump_json(),
            ),
        )
        self._conn.commit()
        return record

    def _next_seq(self) -> int:
        row = self._conn.execute("SELECT MAX(seq) AS seq FROM history").fetchone()
        return (row["seq"] or 0) + 1

    def _get_latest_hash(self) -> Optional[str]:
        """Get the signature of the most recent record."""
        row = self._conn.execute(
            "SELECT signature FROM history ORDER BY seq DESC LIMIT 1"
        ).fetchone()
        return row["signature"] if row else None

    def _records(self, entity_id: int, kind: Optional[str] = None) -> List[HistoryRecord]:
        if kind:
            rows = self._conn.execute(
                "SELECT record_json FROM history WHERE entity_id = ? AND kind = ? "
                "ORDER BY ts, seq",
                (entity_id, kind),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT record_json FROM history WHERE entity_id = ? ORDER BY ts, seq",
                (entity_id,),
            ).fetchall()
        return [HistoryRecord.model_validate_json(r["record_json"]) for r in rows]

    def read(self, entity_id: int) -> List[HistoryEntry]:
        """All entries for an entity, oldest first."""
        return [r.entry for r in self._records(entity_id)]

    def stage_changes(self, entity_id: int) -> List[StageChangeEntry]:
        return [r.entry for r in self._records(entity_id, kind="stage_change")]

    def notes(self, entity_id: int) -> List[NoteEntry]:
        return [r.entry for r in self._records(entity_id, kind="note")]

    def count(self, entity_id: Optional[int] = None) -> int:
        """Number of records, for one entity or for the whole log."""
        if entity_id is None:
            row = self._conn.execute("SELECT COUNT(*) AS cnt FROM history").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(*) AS cnt FROM history WHERE entity_id = ?", (entity_id,)
            ).fetchone()
        return row["cnt"]

    def verify_chain_integrity(self) -> bool:
        """Verify no records have been tampered with."""
        rows = self._conn.execute(
            "SELECT record_json, signature FROM history ORDER BY seq"
        ).fetchall()

        prior_sig = None
        for row in rows:
            record = HistoryRecord.model_validate_json(row["record_json"])
            if record.signature != row["signature"] or record.signature != _sign(record):
                return False
            if record.prior_record_hash != prior_sig:
                return False
            prior_sig = record.signature
        return True

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def _sign(record: HistoryRecord) -> str:
    """SHA-256 over the record with its own signature blanked."""
    record_dict = record.model_dump(mode="json")
    record_dict["signature"] = ""
    record_bytes = json.dumps(record_dict, sort_keys=True, default=str).encode()
    return hashlib.sha256(record_bytes).hexdigest()
