"""SQLite persistence for summaries and the summarization pointer."""

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone

from summarizer.records import SummaryRecord


class SummaryStore:
    """Append-only summary history plus ``last_summarized_index``, per chat.

    Clearing the history resets the pointer in the same transaction; a
    pointer without the summaries it stands for is meaningless.
    """

    def __init__(self, db_path: str, chat_id: str = "default"):
        self.db_path = db_path
        self.chat_id = chat_id
        self._ensure_directory()
        self._init_db()

    def append(self, record: SummaryRecord) -> None:
        """Persist a new summary record."""
        with self._connect() as conn:
            self._insert(conn, record)

    def append_and_advance(self, record: SummaryRecord) -> None:
        """Store the record and move the pointer to its end in one transaction."""
        with self._connect() as conn:
            self._insert(conn, record)
            self._write_pointer(conn, record.end)

    def _insert(self, conn: sqlite3.Connection, record: SummaryRecord) -> None:
        conn.execute(
            """
            INSERT INTO summaries (chat_id, created_at, start_index, end_index, content, auto)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                self.chat_id,
                record.timestamp,
                record.start,
                record.end,
                record.content,
                1 if record.auto else 0,
            ),
        )

    def list(self) -> list[SummaryRecord]:
        """All records in chronological order."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT created_at, start_index, end_index, content, auto
                FROM summaries WHERE chat_id = ? ORDER BY id ASC
                """,
                (self.chat_id,),
            ).fetchall()
        return [
            SummaryRecord(
                timestamp=r["created_at"],
                start=r["start_index"],
                end=r["end_index"],
                content=r["content"],
                auto=bool(r["auto"]),
            )
            for r in rows
        ]

    def list_recent(self) -> list[SummaryRecord]:
        """All records, most recent first (display order)."""
        return list(reversed(self.list()))

    def clear(self) -> int:
        """Delete every summary of this chat and reset the pointer."""
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM summaries WHERE chat_id = ?", (self.chat_id,))
            self._write_pointer(conn, 0)
            return cur.rowcount

    def get_last_summarized_index(self) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT last_summarized_index FROM scheduler_state WHERE chat_id = ?",
                (self.chat_id,),
            ).fetchone()
        return row["last_summarized_index"] if row else 0

    def set_last_summarized_index(self, index: int) -> None:
        if index < 0:
            raise ValueError("last_summarized_index must be >= 0")
        with self._connect() as conn:
            self._write_pointer(conn, index)

    def _write_pointer(self, conn: sqlite3.Connection, index: int) -> None:
        conn.execute(
            """
            INSERT INTO scheduler_state (chat_id, last_summarized_index, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(chat_id) DO UPDATE SET
                last_summarized_index = excluded.last_summarized_index,
                updated_at = excluded.updated_at
            """,
            (self.chat_id, index, self._now()),
        )

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS summaries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    start_index INTEGER NOT NULL,
                    end_index INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    auto INTEGER NOT NULL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_summaries_chat ON summaries(chat_id, id);

                CREATE TABLE IF NOT EXISTS scheduler_state (
                    chat_id TEXT PRIMARY KEY,
                    last_summarized_index INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL
                );
                """
            )

    def _ensure_directory(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(directory, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
