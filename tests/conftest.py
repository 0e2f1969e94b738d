"""
Pytest configuration and fixtures.
"""
import os
import re
from typing import Dict, List, Optional, Set, Tuple

import mysql.connector
import pytest

from provisioner.config.database import ServerSession
from provisioner.models.account import ProvisioningRequest
from provisioner.services.account_service import ProvisioningService
from provisioner.services.audit_service import AuditService, ErrorTrail
from provisioner.utils import sql

_CREATE_DB = re.compile(r"^CREATE DATABASE `(\w+)`$")
_DROP_DB = re.compile(r"^DROP DATABASE `(\w+)`$")
_CREATE_USER = re.compile(r"^CREATE USER ('[^']*'@'[^']*') IDENTIFIED BY ")
_DROP_USER = re.compile(r"^DROP USER ('[^']*'@'[^']*')$")


class FakeClock:
    """Monotonic clock advanced by the fake server."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self._row: Optional[tuple] = None

    def execute(self, query: str, params: Optional[tuple] = None) -> None:
        self._row = self.connection.handle(query, params)

    def fetchone(self) -> Optional[tuple]:
        return self._row

    def close(self) -> None:
        pass


class FakeConnection:
    """
    In-memory stand-in for a server connection.

    Tracks databases and accounts so tests can assert on what is left
    behind, records every query and statement, and raises scripted errors
    for statements starting with a given prefix.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.schemas: Set[str] = set()
        self.grantees: Set[str] = set()
        self.queries: List[Tuple[str, tuple]] = []
        self.statements: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.seconds_per_call = 0.0
        self.closed = False

    def fail_on(self, prefix: str, error: Exception) -> None:
        self.failures[prefix] = error

    def cursor(self, **kwargs) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True

    @property
    def ddl(self) -> List[str]:
        """Statements that create or grant."""
        return [s for s in self.statements if s.startswith(("CREATE", "GRANT"))]

    def handle(self, query: str, params: Optional[tuple]) -> Optional[tuple]:
        self.clock.now += self.seconds_per_call

        for prefix, error in self.failures.items():
            if query.startswith(prefix):
                if params is None:
                    self.statements.append(query)
                raise error

        if params is not None:
            self.queries.append((query, params))
            if query == sql.SCHEMA_EXISTS_QUERY:
                return (params[0],) if params[0] in self.schemas else None
            if query == sql.USER_EXISTS_QUERY:
                return (1,) if params[0] in self.grantees else None
            raise AssertionError(f"unexpected query: {query}")

        self.statements.append(query)
        if m := _CREATE_DB.match(query):
            self.schemas.add(m.group(1))
        elif m := _DROP_DB.match(query):
            self.schemas.discard(m.group(1))
        elif m := _CREATE_USER.match(query):
            self.grantees.add(m.group(1))
        elif m := _DROP_USER.match(query):
            self.grantees.discard(m.group(1))
        return None


@pytest.fixture
def server_error():
    """Build a driver error as raised by mysql-connector."""

    def _make(errno: int = 1007, msg: str = "Can't create database; database exists") -> Exception:
        return mysql.connector.errors.DatabaseError(msg=msg, errno=errno)

    return _make


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr("provisioner.config.database.monotonic", fake)
    return fake


@pytest.fixture
def connection(clock) -> FakeConnection:
    return FakeConnection(clock)


@pytest.fixture
def session(connection) -> ServerSession:
    return ServerSession(connection, default_timeout=6.0)


@pytest.fixture
def error_trail(tmp_path) -> ErrorTrail:
    return ErrorTrail(tmp_path / "state" / "error.log")


@pytest.fixture
def audit(tmp_path) -> AuditService:
    return AuditService(tmp_path / "data" / "accounts.csv")


@pytest.fixture
def service(session, error_trail, audit) -> ProvisioningService:
    return ProvisioningService(
        session,
        error_trail,
        audit=audit,
        password_generator=lambda length: "Secr3t!#%&Password20"[:length],
    )


@pytest.fixture
def make_request():
    """Build a request with test defaults."""

    def _make(raw_name: str, **overrides) -> ProvisioningRequest:
        return ProvisioningRequest(raw_name=raw_name, **overrides)

    return _make


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep settings away from the real home directory and environment."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("PROVISIONER_"):
            monkeypatch.delenv(name)
