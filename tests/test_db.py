from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import DBAPIError

from press_core.app.db import build_engine, run_in_transaction
from press_core.app.services.errors import NotFoundError


def _dropped_connection():
    return DBAPIError("SELECT 1", {}, Exception("Connection terminated unexpectedly"), connection_invalidated=True)


class TestRunInTransaction:
    def test_commits_on_success(self):
        db = MagicMock()
        result = run_in_transaction(db, lambda session, x: x * 2, 21)
        assert result == 42
        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_retries_after_dropped_connection(self, caplog):
        db = MagicMock()
        calls = []

        def flaky(session):
            calls.append(1)
            if len(calls) == 1:
                raise _dropped_connection()
            return "ok"

        with caplog.at_level("WARNING", logger="press_core"):
            assert run_in_transaction(db, flaky, attempts=2) == "ok"
        assert len(calls) == 2
        db.rollback.assert_called_once()
        db.commit.assert_called_once()
        assert any("retrying" in r.getMessage() for r in caplog.records)

    def test_gives_up_after_attempts(self):
        db = MagicMock()

        def always_down(session):
            raise _dropped_connection()

        with pytest.raises(DBAPIError):
            run_in_transaction(db, always_down, attempts=1)
        assert db.rollback.call_count == 2
        db.commit.assert_not_called()

    def test_other_database_errors_are_not_retried(self):
        db = MagicMock()
        calls = []

        def broken(session):
            calls.append(1)
            raise DBAPIError("INSERT", {}, Exception("constraint failed"))

        with pytest.raises(DBAPIError):
            run_in_transaction(db, broken)
        assert len(calls) == 1

    def test_domain_error_rolls_back_and_propagates(self):
        db = MagicMock()

        def missing(session):
            raise NotFoundError("Job 1 not found")

        with pytest.raises(NotFoundError):
            run_in_transaction(db, missing)
        db.rollback.assert_called_once()
        db.commit.assert_not_called()


def test_memory_sqlite_uses_one_shared_connection():
    engine = build_engine("sqlite://")
    try:
        assert engine.pool.__class__.__name__ == "StaticPool"
    finally:
        engine.dispose()
