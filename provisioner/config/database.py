"""
MariaDB server connection and per-attempt time budget using mysql-connector-python.
"""
import math
from contextlib import contextmanager
from time import monotonic
from typing import Any, Iterator, Optional, Sequence

import mysql.connector

from provisioner.config.logging import get_logger
from provisioner.exceptions import (
    ConnectionFailureError,
    ServerCommandError,
    TimeoutExceededError,
)
from provisioner.models.server import ServerCredentials
from provisioner.utils.sql import Statement

logger = get_logger(__name__)

# CR_SERVER_LOST, ER_STATEMENT_TIMEOUT (MariaDB), ER_QUERY_TIMEOUT (MySQL)
TIMEOUT_ERRNOS = frozenset({2013, 1969, 3024})


class ServerSession:
    """
    Single server connection shared by every attempt of one invocation.

    All calls made inside ``deadline()`` share its time budget. Calls with
    ``bounded=False`` ignore the budget and rely on the socket timeout only.
    """

    def __init__(self, connection: Any, default_timeout: float = 6.0):
        self._connection = connection
        self.default_timeout = default_timeout
        self._deadline: Optional[float] = None
        self._budget: Optional[float] = None

    @contextmanager
    def deadline(self, seconds: Optional[float] = None) -> Iterator["ServerSession"]:
        """
        Share one time budget across every bounded call in the block.

        Args:
            seconds: Budget; defaults to the session timeout
        """
        budget = seconds if seconds is not None else self.default_timeout
        previous = (self._deadline, self._budget)
        self._budget = budget
        self._deadline = monotonic() + budget
        try:
            yield self
        finally:
            self._deadline, self._budget = previous

    def _check_deadline(self) -> None:
        if self._deadline is not None and monotonic() >= self._deadline:
            raise TimeoutExceededError(self._budget or 0.0)

    def _translate(self, exc: Exception) -> ServerCommandError:
        errno = getattr(exc, "errno", None)
        if isinstance(exc, TimeoutError) or errno in TIMEOUT_ERRNOS:
            return TimeoutExceededError(self._budget or self.default_timeout)
        msg = getattr(exc, "msg", None) or str(exc)
        return ServerCommandError(msg, errno=errno)

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[tuple]:
        """
        Run a parameterized query and return its first row.

        Raises:
            TimeoutExceededError: If the budget is spent or the server times out
            ServerCommandError: On any other driver error
        """
        self._check_deadline()
        try:
            cursor = self._connection.cursor(buffered=True)
            try:
                cursor.execute(query, tuple(params))
                return cursor.fetchone()
            finally:
                cursor.close()
        except (mysql.connector.Error, TimeoutError) as e:
            raise self._translate(e) from e

    def execute(self, statement: Statement, bounded: bool = True) -> None:
        """
        Run a statement built by ``provisioner.utils.sql``.

        Args:
            statement: Statement to run
            bounded: Refuse to start once the budget is spent

        Raises:
            TimeoutExceededError: If the budget is spent or the server times out
            ServerCommandError: On any other driver error
        """
        if bounded:
            self._check_deadline()

        logger.debug("executing_statement", step=statement.step.value, sql=statement.redacted)

        try:
            cursor = self._connection.cursor()
            try:
                cursor.execute(statement.sql)
            finally:
                cursor.close()
        except (mysql.connector.Error, TimeoutError) as e:
            raise self._translate(e) from e

    def close(self) -> None:
        """Close the connection."""
        try:
            self._connection.close()
            logger.debug("server_connection_closed")
        except mysql.connector.Error as e:
            logger.warning("server_connection_close_failed", error=str(e))

    def __enter__(self) -> "ServerSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def open_session(credentials: ServerCredentials, timeout_seconds: float) -> ServerSession:
    """
    Connect to the server and verify the connection with a ping.

    Args:
        credentials: Administrative credentials
        timeout_seconds: Connect timeout and default per-attempt budget

    Returns:
        Live server session

    Raises:
        ConnectionFailureError: If the server cannot be reached or rejects the login
    """
    logger.info(
        "connecting_to_server",
        hostname=credentials.hostname,
        port=credentials.port,
        username=credentials.username,
    )

    try:
        connection = mysql.connector.connect(
            user=credentials.username,
            password=credentials.password,
            host=credentials.hostname,
            port=credentials.port,
            charset="utf8mb4",
            autocommit=True,
            connection_timeout=max(1, math.ceil(timeout_seconds)),
        )
        connection.ping(reconnect=False)
    except (mysql.connector.Error, TimeoutError) as e:
        logger.error(
            "server_connection_failed",
            hostname=credentials.hostname,
            port=credentials.port,
            error=str(e),
        )
        raise ConnectionFailureError(
            str(e),
            details={"hostname": credentials.hostname, "port": credentials.port},
        ) from e

    logger.info("server_connected", hostname=credentials.hostname, port=credentials.port)

    return ServerSession(connection, default_timeout=timeout_seconds)
