"""
SQLite database for HitchSafe

Holds the connection pool, the schema migrations and a few maintenance
helpers (stats, backup). Everything above this module talks to the
database through SQLiteDocumentStore.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import PersistenceError


@dataclass(frozen=True)
class Migration:
    """One forward schema step"""
    version: int
    name: str
    sql: str


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(
        version=1,
        name="document_store",
        sql="""
        -- Top-level documents (users, trips, credentials), JSON bodies
        CREATE TABLE documents (
            collection TEXT NOT NULL,
            doc_id TEXT NOT NULL,
            data TEXT NOT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (collection, doc_id)
        );

        -- Child documents (emergency contacts); seq keeps insertion order
        CREATE TABLE subdocuments (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            collection TEXT NOT NULL,
            parent_id TEXT NOT NULL,
            subcollection TEXT NOT NULL,
            doc_id TEXT NOT NULL,
            data TEXT NOT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (collection, parent_id, subcollection, doc_id)
        );

        CREATE INDEX idx_subdocuments_parent
            ON subdocuments (collection, parent_id, subcollection);
        """
    ),
)


class ConnectionPool:
    """Bounded set of SQLite connections shared between worker threads"""

    def __init__(self, database_path: str, max_connections: int = 10):
        self.database_path = database_path
        self.max_connections = max_connections
        self._idle: List[sqlite3.Connection] = []
        self._all: List[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def acquire(self) -> sqlite3.Connection:
        with self._lock:
            if self._idle:
                return self._idle.pop()
            if len(self._all) >= self.max_connections:
                raise PersistenceError(
                    f"All {self.max_connections} database connections are in use"
                )
            conn = self._connect()
            self._all.append(conn)
            return conn

    def release(self, conn: sqlite3.Connection):
        with self._lock:
            if conn in self._all and conn not in self._idle:
                self._idle.append(conn)

    def close_all(self):
        with self._lock:
            for conn in self._all:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    self.logger.warning(f"Error closing database connection: {e}")
            self._all.clear()
            self._idle.clear()


class DatabaseManager:
    """
    Opens the HitchSafe database and brings its schema up to date

    Args:
        database_path: SQLite file, created with its parent directory if missing
        max_connections: Pool size
    """

    def __init__(self, database_path: str, max_connections: int = 10):
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(__name__)
        self.pool = ConnectionPool(str(self.database_path), max_connections)
        self.migrations = MIGRATIONS

        self.logger.info(f"Opening database at {self.database_path}")
        self._migrate()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.pool.acquire()
        try:
            yield conn
        finally:
            self.pool.release(conn)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Connection inside BEGIN ... COMMIT, rolled back on any error"""
        with self.connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def schema_version(self) -> int:
        rows = self.execute_query("SELECT MAX(version) FROM migrations")
        return rows[0][0] or 0

    def _migrate(self):
        with self.connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS migrations (
                    version INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

        current = self.schema_version()
        for migration in self.migrations:
            if migration.version <= current:
                continue

            self.logger.info(f"Applying migration {migration.version} ({migration.name})")
            with self.connection() as conn:
                try:
                    conn.executescript(migration.sql)
                    conn.execute(
                        "INSERT INTO migrations (version, name) VALUES (?, ?)",
                        (migration.version, migration.name)
                    )
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    self.logger.error(f"Migration {migration.version} failed: {e}")
                    raise PersistenceError(f"Migration {migration.name} failed: {e}") from e

    def execute_query(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        with self.connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_update(self, query: str, params: Tuple = ()) -> int:
        """Run one write statement in its own transaction; returns affected rows"""
        with self.transaction() as conn:
            return conn.execute(query, params).rowcount

    def get_stats(self) -> Dict[str, Any]:
        """Document counts per collection, child document count and file size"""
        rows = self.execute_query(
            "SELECT collection, COUNT(*) AS total FROM documents GROUP BY collection"
        )
        subdocuments = self.execute_query("SELECT COUNT(*) FROM subdocuments")[0][0]

        return {
            'documents': {row['collection']: row['total'] for row in rows},
            'subdocuments': subdocuments,
            'schema_version': self.schema_version(),
            'database_size_bytes': (
                self.database_path.stat().st_size if self.database_path.exists() else 0
            )
        }

    def backup_database(self, backup_path: Optional[str] = None) -> str:
        """Copy the live database with SQLite's online backup; returns the copy's path"""
        if backup_path is None:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_path = f"{self.database_path}.backup_{stamp}"

        target = Path(backup_path)
        target.parent.mkdir(parents=True, exist_ok=True)

        with self.connection() as conn:
            try:
                backup_conn = sqlite3.connect(str(target))
                try:
                    conn.backup(backup_conn)
                finally:
                    backup_conn.close()
            except sqlite3.Error as e:
                raise PersistenceError(f"Backup to {target} failed: {e}") from e

        self.logger.info(f"Database backed up to {target}")
        return str(target)

    def close(self):
        self.pool.close_all()
