"""
Case database connection management.

Provides the scoped guards every commsgraph operation runs inside:

    with db.read("getting account") as conn:
        ...                      # shared lock, plain connection

    with db.transaction("adding account") as conn:
        ...                      # exclusive lock, BEGIN IMMEDIATE ... COMMIT

Each guard opens its own SQLite connection and closes it on exit, so a guard
can be used from any thread. Locks are released and uncommitted work is rolled
back on every exit path. Any sqlite3.Error raised inside a guard is wrapped in
CommunicationsStoreError (DuplicateRowError for uniqueness violations).

Guards do not nest: code running inside one must take the connection it was
given rather than opening another guard.
"""

import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple, Any
import logging

from commsgraph.config import Config
from commsgraph.exceptions import CommunicationsStoreError, DuplicateRowError
from commsgraph.schema import create_schema

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Shared/exclusive lock for threads within one process.

    Any number of readers may hold the lock together; a writer holds it alone.
    Waiting writers block new readers so writes are not starved.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_shared(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_shared(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_exclusive(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_exclusive(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class CaseDatabase:
    """
    Connection manager for a case database.

    Creates the schema on open. Cross-process writers are serialized by
    SQLite itself (BEGIN IMMEDIATE with a busy timeout); threads of this
    process are serialized by a ReadWriteLock.
    """

    def __init__(self, config: Config):
        """
        Initialize the case database manager.

        Args:
            config: Configuration object with the case database path.
        """
        self.config = config
        self._lock = ReadWriteLock()
        self._opened = False

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def open(self) -> "CaseDatabase":
        """
        Create or verify the schema and mark the database ready for use.

        Raises:
            CommunicationsStoreError: If the schema cannot be created.
        """
        if self._opened:
            return self

        self.config.ensure_case_dir()
        try:
            create_schema(self.config.case_db_path)
        except sqlite3.Error as e:
            raise CommunicationsStoreError("creating case database schema", e) from e

        self._opened = True
        logger.info(f"Opened case database: {self.config.case_db_path_str}")
        return self

    def close(self) -> None:
        """Mark the database closed. Connections are per-guard, so nothing is held."""
        if self._opened:
            self._opened = False
            logger.info("Case database closed")

    @property
    def is_open(self) -> bool:
        return self._opened

    def _connect(self) -> sqlite3.Connection:
        if not self._opened:
            raise RuntimeError("Case database not opened. Call open() first.")

        # isolation_level=None: transactions are begun explicitly by the guards
        conn = sqlite3.connect(
            self.config.case_db_path_str,
            timeout=self.config.busy_timeout,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def read(self, operation: str) -> Iterator[sqlite3.Connection]:
        """
        Run a read under the shared lock.

        Args:
            operation: Description used in error messages (e.g. "getting account").

        Yields:
            SQLite connection valid until the block exits.

        Raises:
            CommunicationsStoreError: If the read fails.
        """
        self._lock.acquire_shared()
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self._connect()
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Error {operation}: {e}")
            raise CommunicationsStoreError(operation, e) from e
        finally:
            if conn is not None:
                conn.close()
            self._lock.release_shared()

    @contextmanager
    def transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """
        Run a write under the exclusive lock inside one transaction.

        Commits when the block exits normally and rolls back on any exception.

        Args:
            operation: Description used in error messages (e.g. "adding account").

        Yields:
            SQLite connection with an open transaction.

        Raises:
            DuplicateRowError: If a uniqueness constraint was violated.
            CommunicationsStoreError: If any other store error occurred.
        """
        self._lock.acquire_exclusive()
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self._connect()
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
                conn.execute("COMMIT;")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK;")
                raise
        except sqlite3.IntegrityError as e:
            if _is_unique_violation(e):
                logger.info(f"Uniqueness violation while {operation}: {e}")
                raise DuplicateRowError(operation, e) from e
            logger.error(f"Error {operation}: {e}")
            raise CommunicationsStoreError(operation, e) from e
        except sqlite3.Error as e:
            logger.error(f"Error {operation}: {e}")
            raise CommunicationsStoreError(operation, e) from e
        finally:
            if conn is not None:
                conn.close()
            self._lock.release_exclusive()

    def execute_query(
        self, query: str, parameters: Optional[Tuple[Any, ...]] = None
    ) -> List[Tuple[Any, ...]]:
        """
        Execute a read-only query and return results as plain tuples.

        Args:
            query: SQL query string with ? placeholders.
            parameters: Optional query parameters.

        Returns:
            List of result rows.
        """
        with self.read("executing query") as conn:
            cursor = conn.execute(query, parameters or ())
            return [tuple(row) for row in cursor.fetchall()]


def _is_unique_violation(error: sqlite3.IntegrityError) -> bool:
    # sqlite3 exposes the extended code from Python 3.11; fall back to the message
    code = getattr(error, "sqlite_errorname", None)
    if code is not None:
        return code in ("SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY")
    return "UNIQUE constraint failed" in str(error)
