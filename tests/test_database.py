"""
Tests for the server session and connection opener.
"""
import mysql.connector
import pytest

from provisioner.config import database
from provisioner.config.database import ServerSession, open_session
from provisioner.exceptions import ConnectionFailureError, ServerCommandError, TimeoutExceededError
from provisioner.models.server import ServerCredentials
from provisioner.utils import sql
from provisioner.utils.identifiers import Identifier


@pytest.fixture
def credentials():
    return ServerCredentials(username="root", password="pw", hostname="127.0.0.1", port=3306)


def test_budget_is_shared_across_calls(session, connection):
    connection.seconds_per_call = 2.0

    with session.deadline(5):
        session.fetch_one(sql.SCHEMA_EXISTS_QUERY, ("a",))
        session.fetch_one(sql.SCHEMA_EXISTS_QUERY, ("a",))
        session.fetch_one(sql.SCHEMA_EXISTS_QUERY, ("a",))
        with pytest.raises(TimeoutExceededError) as exc_info:
            session.execute(sql.create_database(Identifier("a")))

    assert exc_info.value.timeout_seconds == 5
    assert connection.statements == []


def test_unbounded_statements_ignore_budget(session, connection):
    connection.seconds_per_call = 10.0

    with session.deadline(1):
        session.execute(sql.create_database(Identifier("a")))
        session.execute(sql.drop_database(Identifier("a")), bounded=False)

    assert connection.statements == ["CREATE DATABASE `a`", "DROP DATABASE `a`"]


def test_no_budget_outside_deadline(session, connection):
    connection.seconds_per_call = 100.0

    session.execute(sql.create_database(Identifier("a")))
    session.execute(sql.create_database(Identifier("b")))

    assert len(connection.statements) == 2


def test_driver_errors_are_wrapped(session, connection, server_error):
    connection.fail_on("CREATE", server_error(1007, "database exists"))

    with pytest.raises(ServerCommandError) as exc_info:
        session.execute(sql.create_database(Identifier("a")))

    assert exc_info.value.errno == 1007
    assert exc_info.value.message == "database exists"
    assert isinstance(exc_info.value.__cause__, mysql.connector.Error)


@pytest.mark.parametrize("errno", [2013, 1969, 3024])
def test_driver_timeouts_are_translated(session, connection, server_error, errno):
    connection.fail_on("SELECT", server_error(errno, "timeout"))

    with pytest.raises(TimeoutExceededError):
        session.fetch_one(sql.SCHEMA_EXISTS_QUERY, ("a",))


def test_socket_timeout_is_translated(session, connection):
    connection.fail_on("SELECT", TimeoutError("timed out"))

    with pytest.raises(TimeoutExceededError):
        session.fetch_one(sql.SCHEMA_EXISTS_QUERY, ("a",))


def test_session_closes_connection(session, connection):
    with session:
        pass

    assert connection.closed is True


def test_open_session(monkeypatch, credentials, connection):
    seen = {}
    pinged = []
    connection.ping = lambda reconnect: pinged.append(reconnect)

    def fake_connect(**kwargs):
        seen.update(kwargs)
        return connection

    monkeypatch.setattr(database.mysql.connector, "connect", fake_connect)

    session = open_session(credentials, 2.5)

    assert isinstance(session, ServerSession)
    assert session.default_timeout == 2.5
    assert seen["connection_timeout"] == 3
    assert seen["autocommit"] is True
    assert seen["host"] == "127.0.0.1"
    assert pinged == [False]


def test_open_session_failure(monkeypatch, credentials):
    def refuse(**kwargs):
        raise mysql.connector.errors.InterfaceError(msg="Can't connect to MySQL server", errno=2003)

    monkeypatch.setattr(database.mysql.connector, "connect", refuse)

    with pytest.raises(ConnectionFailureError, match="Can't connect"):
        open_session(credentials, 6)
