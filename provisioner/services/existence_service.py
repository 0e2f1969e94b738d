"""
Existence service.
Answers whether the database and/or the account already exist on the server.
"""
from typing import NamedTuple

from provisioner.config.database import ServerSession
from provisioner.config.logging import get_logger
from provisioner.utils import sql
from provisioner.utils.identifiers import HostPattern, Identifier

logger = get_logger(__name__)


class ExistenceReport(NamedTuple):
    """What the server already has for one identifier."""

    schema_exists: bool
    principal_exists: bool

    @property
    def any_exists(self) -> bool:
        return self.schema_exists or self.principal_exists

    def describe(self, name: Identifier, host: HostPattern) -> str:
        """Operator-facing reason for skipping."""
        account = sql.account(name, host)
        if self.schema_exists and self.principal_exists:
            return f"Skipping '{name}': database exists and user {account} exists"
        if self.schema_exists:
            return f"Skipping '{name}': database exists (will not create user)"
        if self.principal_exists:
            return f"Skipping '{name}': user {account} exists (will not create database)"
        return f"'{name}' is available"


class ExistenceService:
    """Queries server metadata views; never caches."""

    def __init__(self, session: ServerSession):
        self.session = session

    def schema_exists(self, name: Identifier) -> bool:
        return self.session.fetch_one(sql.SCHEMA_EXISTS_QUERY, (str(name),)) is not None

    def principal_exists(self, name: Identifier, host: HostPattern) -> bool:
        return self.session.fetch_one(sql.USER_EXISTS_QUERY, (sql.grantee(name, host),)) is not None

    def check(self, name: Identifier, host: HostPattern) -> ExistenceReport:
        """
        Check both halves of the database/user pair.

        Args:
            name: Database and user name
            host: Account host

        Returns:
            Existence report

        Raises:
            ServerCommandError: If either query fails (including timeouts)
        """
        report = ExistenceReport(
            schema_exists=self.schema_exists(name),
            principal_exists=self.principal_exists(name, host),
        )

        logger.info(
            "existence_checked",
            name=str(name),
            host=str(host),
            schema_exists=report.schema_exists,
            principal_exists=report.principal_exists,
        )

        return report
