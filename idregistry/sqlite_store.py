"""
SQLite registry store.

Persists identities, registry metadata and the attestation journal in one
database file. Connections are thread-local; every mutation runs in a
BEGIN IMMEDIATE transaction, so SQLite serializes writers and a failed call
rolls back completely.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from .clock import Clock
from .errors import RegistryAlreadyBootstrappedError, RegistryNotBootstrappedError
from .journal import build_entry
from .principals import NULL_PRINCIPAL
from .records import IdentityRecord, JournalEntry, RegistryInfo
from .store import RegistryStore

log = logging.getLogger(__name__)

# Seconds a writer waits for the database lock before giving up.
BUSY_TIMEOUT = 30.0

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS registry_meta (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        admin TEXT NOT NULL,
        created_at INTEGER NOT NULL
    );""",
    f"""
    CREATE TABLE IF NOT EXISTS identities (
        principal TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        verified INTEGER NOT NULL DEFAULT 0,
        attested_at INTEGER NOT NULL DEFAULT 0,
        attested_by TEXT NOT NULL DEFAULT '{NULL_PRINCIPAL}'
    );""",
    """
    CREATE TABLE IF NOT EXISTS attestation_log (
        seq INTEGER PRIMARY KEY,
        target TEXT NOT NULL,
        attester TEXT NOT NULL,
        attested_at INTEGER NOT NULL,
        payload_hash TEXT NOT NULL,
        prev_entry_hash TEXT,
        entry_hash TEXT NOT NULL
    );""",
    """
    CREATE INDEX IF NOT EXISTS idx_attestation_log_target
    ON attestation_log(target);""",
)


class SQLiteRegistryStore(RegistryStore):
    """Transactional store backed by a SQLite file."""

    backend = "sqlite"

    def __init__(self, path: str = "data/registry.db", journal: bool = True):
        if str(path) == ":memory:":
            raise ValueError("SQLiteRegistryStore needs a file path; use InMemoryRegistryStore instead")
        self.path = Path(path)
        self._journal = journal
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._conn_lock = threading.Lock()
        self._bootstrapped = False
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection.
        Connections are reused within the same thread.
        """
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.path),
                timeout=BUSY_TIMEOUT,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
            with self._conn_lock:
                self._connections.append(conn)
        return conn

    @contextmanager
    def _transaction(self):
        """
        Write transaction holding the database write lock from the start.
        Commits on success, rolls back on any failure.
        """
        conn = self._get_connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    def _require_bootstrapped(self) -> None:
        if not self.is_bootstrapped():
            raise RegistryNotBootstrappedError()

    def bootstrap(self, admin: str, created_at: int) -> RegistryInfo:
        with self._transaction() as conn:
            row = conn.execute("SELECT admin FROM registry_meta WHERE id=1").fetchone()
            if row is not None:
                raise RegistryAlreadyBootstrappedError(row['admin'])
            conn.execute(
                "INSERT INTO registry_meta(id, admin, created_at) VALUES(1,?,?)",
                (admin, created_at)
            )
        self._bootstrapped = True
        log.debug("sqlite registry %s bootstrapped by %s", self.path, admin)
        return self.info()

    def is_bootstrapped(self) -> bool:
        if not self._bootstrapped:
            conn = self._get_connection()
            row = conn.execute("SELECT 1 FROM registry_meta WHERE id=1").fetchone()
            self._bootstrapped = row is not None
        return self._bootstrapped

    def info(self) -> RegistryInfo:
        self._require_bootstrapped()
        conn = self._get_connection()
        meta = conn.execute("SELECT admin, created_at FROM registry_meta WHERE id=1").fetchone()
        return RegistryInfo(
            admin=meta['admin'],
            created_at=meta['created_at'],
            records=self.count(),
            backend=self.backend,
        )

    def insert_if_absent(self, principal: str, record: IdentityRecord) -> bool:
        """Uses INSERT OR IGNORE so check and insert are one statement."""
        self._require_bootstrapped()
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO identities(principal, name, verified, attested_at, attested_by) "
                "VALUES(?,?,?,?,?)",
                (principal, record.name, int(record.verified), record.attested_at, record.attested_by)
            )
            return cur.rowcount == 1

    def update_if_present(self, principal: str, attester: str, clock: Clock) -> Optional[IdentityRecord]:
        self._require_bootstrapped()
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT name, verified, attested_at, attested_by FROM identities WHERE principal=?",
                (principal,)
            ).fetchone()
            if row is None:
                return None
            updated = _row_to_record(row).with_attestation(attester, clock.now())
            conn.execute(
                "UPDATE identities SET verified=1, attested_at=?, attested_by=? WHERE principal=?",
                (updated.attested_at, updated.attested_by, principal)
            )
            if self._journal:
                self._append_journal(conn, principal, attester, updated.attested_at)
            return updated

    def _append_journal(self, conn: sqlite3.Connection, target: str, attester: str, attested_at: int) -> None:
        last = conn.execute(
            "SELECT seq, entry_hash FROM attestation_log ORDER BY seq DESC LIMIT 1"
        ).fetchone()
        seq = (last['seq'] + 1) if last else 1
        entry = build_entry(seq, last['entry_hash'] if last else None, target, attester, attested_at)
        conn.execute(
            "INSERT INTO attestation_log(seq, target, attester, attested_at, payload_hash, "
            "prev_entry_hash, entry_hash) VALUES(?,?,?,?,?,?,?)",
            (entry.seq, entry.target, entry.attester, entry.attested_at,
             entry.payload_hash, entry.prev_entry_hash, entry.entry_hash)
        )

    def get(self, principal: str) -> Optional[IdentityRecord]:
        self._require_bootstrapped()
        conn = self._get_connection()
        row = conn.execute(
            "SELECT name, verified, attested_at, attested_by FROM identities WHERE principal=?",
            (principal,)
        ).fetchone()
        return _row_to_record(row) if row else None

    def count(self) -> int:
        self._require_bootstrapped()
        conn = self._get_connection()
        return conn.execute("SELECT COUNT(*) AS cnt FROM identities").fetchone()['cnt']

    def journal_entries(self, principal: Optional[str] = None) -> List[JournalEntry]:
        self._require_bootstrapped()
        conn = self._get_connection()
        sql = ("SELECT seq, target, attester, attested_at, payload_hash, prev_entry_hash, entry_hash "
               "FROM attestation_log")
        if principal is None:
            cur = conn.execute(sql + " ORDER BY seq ASC")
        else:
            cur = conn.execute(sql + " WHERE target=? ORDER BY seq ASC", (principal,))
        return [JournalEntry(**dict(row)) for row in cur.fetchall()]

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._conn_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()


def _row_to_record(row: sqlite3.Row) -> IdentityRecord:
    return IdentityRecord(
        name=row['name'],
        verified=bool(row['verified']),
        attested_at=row['attested_at'],
        attested_by=row['attested_by'],
    )
