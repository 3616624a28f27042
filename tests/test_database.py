"""
Tests for CaseDatabase guards and the ReadWriteLock.
"""

import sqlite3
import threading
import time
from pathlib import Path

import pytest

from commsgraph.config import Config
from commsgraph.database import CaseDatabase, ReadWriteLock
from commsgraph.exceptions import CommunicationsStoreError, DuplicateRowError


class TestCaseDatabaseLifecycle:
    """Tests for opening and closing."""

    def test_open_creates_schema(self, case_config: Config):
        with CaseDatabase(case_config) as db:
            assert db.is_open
        assert case_config.case_db_path.exists()

    def test_closed_after_context(self, case_config: Config):
        db = CaseDatabase(case_config)
        with db:
            pass
        assert not db.is_open

    def test_guard_requires_open(self, case_config: Config):
        db = CaseDatabase(case_config)
        with pytest.raises(RuntimeError, match="not opened"):
            with db.read("reading"):
                pass

    def test_open_is_idempotent(self, case_config: Config):
        db = CaseDatabase(case_config)
        assert db.open() is db.open()
        db.close()

    def test_open_failure_wrapped(self, tmp_path: Path):
        # A directory cannot be opened as a database file
        directory = tmp_path / "case.db"
        directory.mkdir()
        with pytest.raises(CommunicationsStoreError, match="creating case database schema"):
            CaseDatabase(Config(case_db_path=str(directory))).open()


class TestGuards:
    """Tests for read() and transaction()."""

    def test_transaction_commits(self, case_db: CaseDatabase):
        with case_db.transaction("adding type") as conn:
            conn.execute("INSERT INTO account_types (type_name, display_name) VALUES ('X', 'X');")

        with case_db.read("reading type") as conn:
            row = conn.execute("SELECT display_name FROM account_types WHERE type_name = 'X';").fetchone()
        assert row["display_name"] == "X"

    def test_transaction_rolls_back_on_exception(self, case_db: CaseDatabase):
        with pytest.raises(ValueError):
            with case_db.transaction("adding type") as conn:
                conn.execute("INSERT INTO account_types (type_name, display_name) VALUES ('Y', 'Y');")
                raise ValueError("boom")

        rows = case_db.execute_query("SELECT * FROM account_types WHERE type_name = 'Y';")
        assert rows == []

    def test_unique_violation_is_duplicate_row_error(self, case_db: CaseDatabase):
        with case_db.transaction("adding type") as conn:
            conn.execute("INSERT INTO account_types (type_name, display_name) VALUES ('Z', 'Z');")

        with pytest.raises(DuplicateRowError) as exc_info:
            with case_db.transaction("adding type again") as conn:
                conn.execute("INSERT INTO account_types (type_name, display_name) VALUES ('Z', 'Z');")

        assert exc_info.value.operation == "adding type again"
        assert isinstance(exc_info.value.__cause__, sqlite3.IntegrityError)

    def test_failed_transaction_leaves_no_partial_rows(self, case_db: CaseDatabase):
        with pytest.raises(DuplicateRowError):
            with case_db.transaction("adding types") as conn:
                conn.execute("INSERT INTO account_types (type_name, display_name) VALUES ('A', 'A');")
                conn.execute("INSERT INTO account_types (type_name, display_name) VALUES ('A', 'A');")

        assert case_db.execute_query("SELECT * FROM account_types WHERE type_name = 'A';") == []

    def test_read_error_wrapped(self, case_db: CaseDatabase):
        with pytest.raises(CommunicationsStoreError, match="reading nothing"):
            with case_db.read("reading nothing") as conn:
                conn.execute("SELECT * FROM no_such_table;")

    def test_other_integrity_error_not_duplicate(self, case_db: CaseDatabase):
        with pytest.raises(CommunicationsStoreError) as exc_info:
            with case_db.transaction("adding account") as conn:
                # Foreign key violation: no such account type
                conn.execute(
                    "INSERT INTO accounts (account_type_id, account_unique_identifier) VALUES (999, 'x');"
                )
        assert not isinstance(exc_info.value, DuplicateRowError)

    def test_execute_query_returns_tuples(self, case_db: CaseDatabase):
        rows = case_db.execute_query("SELECT ?, ?;", (1, "a"))
        assert rows == [(1, "a")]


class TestReadWriteLock:
    """Tests for the shared/exclusive lock."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        lock.acquire_shared()
        acquired = threading.Event()

        def reader():
            lock.acquire_shared()
            acquired.set()
            lock.release_shared()

        thread = threading.Thread(target=reader)
        thread.start()
        assert acquired.wait(timeout=2)
        thread.join()
        lock.release_shared()

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        lock.acquire_exclusive()
        acquired = threading.Event()

        def reader():
            lock.acquire_shared()
            acquired.set()
            lock.release_shared()

        thread = threading.Thread(target=reader)
        thread.start()
        assert not acquired.wait(timeout=0.2)
        lock.release_exclusive()
        assert acquired.wait(timeout=2)
        thread.join()

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        lock.acquire_shared()
        order = []

        def writer():
            lock.acquire_exclusive()
            order.append("writer")
            lock.release_exclusive()

        thread = threading.Thread(target=writer)
        thread.start()
        time.sleep(0.1)
        order.append("reader released")
        lock.release_shared()
        thread.join(timeout=2)
        assert order == ["reader released", "writer"]
