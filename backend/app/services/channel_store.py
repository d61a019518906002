import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from .errors import InvalidIdentifier
from .identifiers import is_canonical_channel_id
from .models import UNKNOWN_CHANNEL_NAME, ChannelRecord, VerificationStatus, VoteDirection


logger = logging.getLogger(__name__)

VOTE_COLUMNS = {
    VoteDirection.FOR: "votesFor",
    VoteDirection.AGAINST: "votesAgainst",
}

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS channels (
    id TEXT PRIMARY KEY,
    name TEXT DEFAULT '{UNKNOWN_CHANNEL_NAME}',
    votesFor INTEGER DEFAULT 0,
    votesAgainst INTEGER DEFAULT 0,
    verificationStatus INTEGER DEFAULT 0
)
"""


class KeyedLocks:
    """One lock per key, created on first use and kept for the process lifetime."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


def _row_to_record(row: sqlite3.Row) -> ChannelRecord:
    return ChannelRecord(
        id=row["id"],
        name=row["name"] or UNKNOWN_CHANNEL_NAME,
        votes_for=row["votesFor"] or 0,
        votes_against=row["votesAgainst"] or 0,
        verification_status=VerificationStatus(row["verificationStatus"] or 0),
    )


class ChannelStore:
    """
    Durable channel records in SQLite, one row per canonical id.

    Operations on the same id are serialized through KeyedLocks; different
    ids never wait on each other. `on_change` is called with the id after
    every committed mutation.
    """

    def __init__(self, db_path: str | Path, on_change: Callable[[str], None] | None = None):
        self.db_path = Path(db_path)
        self.on_change = on_change
        self._locks = KeyedLocks()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(SCHEMA)

    def _notify(self, channel_id: str) -> None:
        if self.on_change is not None:
            self.on_change(channel_id)

    @staticmethod
    def _require_canonical(channel_id: str) -> None:
        if not is_canonical_channel_id(channel_id):
            raise InvalidIdentifier("Invalid channel ID")

    def _select(self, conn: sqlite3.Connection, channel_id: str) -> ChannelRecord | None:
        row = conn.execute(
            "SELECT id, name, votesFor, votesAgainst, verificationStatus FROM channels WHERE id = ?",
            (channel_id,),
        ).fetchone()
        return _row_to_record(row) if row else None

    @staticmethod
    def _ensure_row(conn: sqlite3.Connection, channel_id: str) -> None:
        conn.execute("INSERT OR IGNORE INTO channels (id) VALUES (?)", (channel_id,))

    def lookup(self, channel_id: str) -> ChannelRecord | None:
        self._require_canonical(channel_id)
        with self._locks.lock_for(channel_id), self._connect() as conn:
            return self._select(conn, channel_id)

    def get_or_create(self, channel_id: str) -> ChannelRecord:
        self._require_canonical(channel_id)
        with self._locks.lock_for(channel_id), self._connect() as conn:
            record = self._select(conn, channel_id)
            if record is not None:
                return record
            self._ensure_row(conn, channel_id)
            logger.info("Created channel record %s", channel_id)
            return self._select(conn, channel_id)

    def increment_vote(self, channel_id: str, direction: VoteDirection) -> ChannelRecord:
        self._require_canonical(channel_id)
        column = VOTE_COLUMNS[VoteDirection(direction)]
        with self._locks.lock_for(channel_id):
            with self._connect() as conn:
                self._ensure_row(conn, channel_id)
                conn.execute(f"UPDATE channels SET {column} = {column} + 1 WHERE id = ?", (channel_id,))
                record = self._select(conn, channel_id)
            self._notify(channel_id)
        return record

    def set_verification(self, channel_id: str, status: VerificationStatus) -> ChannelRecord:
        self._require_canonical(channel_id)
        status = VerificationStatus(status)
        with self._locks.lock_for(channel_id):
            with self._connect() as conn:
                self._ensure_row(conn, channel_id)
                conn.execute(
                    "UPDATE channels SET verificationStatus = ? WHERE id = ?",
                    (int(status), channel_id),
                )
                record = self._select(conn, channel_id)
            self._notify(channel_id)
        return record

    def maybe_set_name(self, channel_id: str, name: str) -> ChannelRecord:
        """Fill in the display name only while it is still the default."""
        self._require_canonical(channel_id)
        with self._locks.lock_for(channel_id):
            with self._connect() as conn:
                self._ensure_row(conn, channel_id)
                cursor = conn.execute(
                    "UPDATE channels SET name = ? WHERE id = ? AND (name IS NULL OR name = ?)",
                    (name, channel_id, UNKNOWN_CHANNEL_NAME),
                )
                changed = cursor.rowcount > 0
                record = self._select(conn, channel_id)
            if changed:
                self._notify(channel_id)
        return record
