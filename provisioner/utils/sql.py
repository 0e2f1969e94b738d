"""
Statement builder for account provisioning.

DDL cannot bind identifiers or credentials as query parameters, so every
statement that embeds them is built here:
- identifier positions take only ``Identifier`` values and are backtick-quoted
- host positions take only ``HostPattern`` values
- value positions are single-quoted with embedded quotes doubled
"""
from dataclasses import dataclass
from enum import Enum

from provisioner.utils.identifiers import HostPattern, Identifier

REDACTED = "'***'"

SCHEMA_EXISTS_QUERY = (
    "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA "
    "WHERE SCHEMA_NAME = %s LIMIT 1"
)
USER_EXISTS_QUERY = (
    "SELECT 1 FROM information_schema.USER_PRIVILEGES "
    "WHERE GRANTEE = %s LIMIT 1"
)


class Step(str, Enum):
    """Server-side steps of the provisioning transaction."""

    CREATE_DATABASE = "create database"
    CREATE_USER = "create user"
    GRANT_PRIVILEGES = "grant privileges"
    DROP_USER = "drop user"
    DROP_DATABASE = "drop database"


@dataclass(frozen=True)
class Statement:
    """A ready-to-run statement and its redacted form for logs and dry runs."""

    step: Step
    sql: str
    redacted: str

    def __str__(self) -> str:
        return self.redacted


def _require(value: object, kind: type, position: str) -> None:
    if not isinstance(value, kind):
        raise TypeError(f"{position} requires a validated {kind.__name__}, got {type(value).__name__}")


def quote_identifier(name: Identifier) -> str:
    """Quote a validated identifier as a delimited identifier."""
    _require(name, Identifier, "identifier position")
    return "`" + name.replace("`", "``") + "`"


def quote_literal(value: str) -> str:
    """Quote a value as a string literal, doubling single quotes."""
    return "'" + value.replace("'", "''") + "'"


def account(user: Identifier, host: HostPattern) -> str:
    """Render 'user'@'host'."""
    _require(user, Identifier, "account user")
    _require(host, HostPattern, "account host")
    return f"{quote_literal(user)}@{quote_literal(host)}"


def grantee(user: Identifier, host: HostPattern) -> str:
    """GRANTEE value as listed in information_schema.USER_PRIVILEGES."""
    return account(user, host)


def create_database(name: Identifier) -> Statement:
    sql = f"CREATE DATABASE {quote_identifier(name)}"
    return Statement(Step.CREATE_DATABASE, sql, sql)


def drop_database(name: Identifier) -> Statement:
    sql = f"DROP DATABASE {quote_identifier(name)}"
    return Statement(Step.DROP_DATABASE, sql, sql)


def create_user(user: Identifier, host: HostPattern, password: str) -> Statement:
    prefix = f"CREATE USER {account(user, host)} IDENTIFIED BY "
    return Statement(Step.CREATE_USER, prefix + quote_literal(password), prefix + REDACTED)


def drop_user(user: Identifier, host: HostPattern) -> Statement:
    sql = f"DROP USER {account(user, host)}"
    return Statement(Step.DROP_USER, sql, sql)


def grant_all(name: Identifier, user: Identifier, host: HostPattern) -> Statement:
    sql = f"GRANT ALL PRIVILEGES ON {quote_identifier(name)}.* TO {account(user, host)}"
    return Statement(Step.GRANT_PRIVILEGES, sql, sql)
