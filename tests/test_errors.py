"""Tests for datastore error classification."""

import errno
import sqlite3

import pytest
from sqlalchemy.exc import DisconnectionError, OperationalError, ProgrammingError

from epass.core.errors import (
    InternalError,
    UpstreamUnavailable,
    is_connection_error,
    raise_for_database_error,
)


class PgError(Exception):
    """Driver error carrying a Postgres SQLSTATE, like psycopg2's."""

    def __init__(self, message: str, pgcode: str | None = None):
        super().__init__(message)
        self.pgcode = pgcode


class TestIsConnectionError:
    """Tests for is_connection_error."""

    @pytest.mark.parametrize("orig", [
        ConnectionRefusedError("refused"),
        ConnectionResetError("reset"),
        TimeoutError("timed out"),
        OSError(errno.EHOSTUNREACH, "No route to host"),
        PgError("terminating connection due to administrator command", "57P01"),
        PgError("connection failure", "08006"),
        PgError('could not connect to server: Connection refused\n\tIs the server running on host "db"?'),
    ])
    def test_unreachable(self, orig):
        """Test failures that mean the database could not be reached."""
        assert is_connection_error(OperationalError("SELECT 1", {}, orig))

    @pytest.mark.parametrize("orig", [
        sqlite3.OperationalError("no such table: attendees"),
        PgError("canceling statement due to statement timeout", "57014"),
        PgError('relation "attendees" does not exist', "42P01"),
    ])
    def test_server_side_failures(self, orig):
        """Test schema errors and statement timeouts are not connection errors."""
        assert not is_connection_error(OperationalError("SELECT 1", {}, orig))

    def test_invalidated_connection(self):
        """Test errors SQLAlchemy flagged as disconnects count as unreachable."""
        exc = OperationalError("SELECT 1", {}, Exception("SSL SYSCALL error"), connection_invalidated=True)
        assert is_connection_error(exc)

    def test_disconnection_error(self):
        assert is_connection_error(DisconnectionError("pool pre-ping failed"))

    def test_plain_errors(self):
        assert not is_connection_error(ValueError("bad"))
        assert not is_connection_error(ProgrammingError("SELECT", {}, Exception("syntax error")))


class TestRaiseForDatabaseError:
    """Tests for raise_for_database_error."""

    def test_unreachable_is_upstream_unavailable(self):
        """Test connection errors become a retryable 503."""
        exc = OperationalError("SELECT 1", {}, ConnectionRefusedError("refused"))
        with pytest.raises(UpstreamUnavailable):
            raise_for_database_error(exc, "lookup")

    def test_missing_table_is_internal_error(self):
        """Test a schema problem is a 500, not a retryable outage."""
        exc = OperationalError("SELECT 1", {}, sqlite3.OperationalError("no such table: attendees"))
        with pytest.raises(InternalError):
            raise_for_database_error(exc, "lookup")

    def test_statement_timeout_is_internal_error(self):
        exc = OperationalError("SELECT 1", {}, PgError("canceling statement", "57014"))
        with pytest.raises(InternalError):
            raise_for_database_error(exc, "search")
