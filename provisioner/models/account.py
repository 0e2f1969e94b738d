"""
Pydantic models for provisioning requests, results and audit records.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

AUDIT_HEADER = ("Timestamp", "Database", "Username", "Password")
AUDIT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


class ProvisioningStatus(str, Enum):
    """Outcome of a successful provisioning attempt."""

    SKIPPED = "skipped"
    DRY_RUN = "dry_run"
    CREATED = "created"


class ProvisioningRequest(BaseModel):
    """One attempt to provision a database/user pair."""

    model_config = ConfigDict(frozen=True)

    raw_name: str = Field(..., description="Operator-supplied name before normalization")
    user_host: str = Field(default="localhost", description="Host part of the account")
    allow_wildcard_host: bool = Field(default=False, description="Permit '%' and '_' in the host")
    normalize: bool = Field(default=False, description="Normalize the raw name into an identifier")
    dry_run: bool = Field(default=False, description="Stop before any statement is issued")
    timeout_seconds: float = Field(default=6.0, gt=0, description="Time budget for all server calls")


class ProvisioningResult(BaseModel):
    """
    Result of one provisioning attempt.

    Built once, after every step (audit included) has finished.
    """

    model_config = ConfigDict(frozen=True)

    status: ProvisioningStatus
    requested_name: str
    resolved_name: str
    username: str
    user_host: str
    password: Optional[str] = Field(default=None, description="Only set when status is CREATED")
    message: str = ""
    audit_written: bool = False
    planned_statements: Tuple[str, ...] = Field(
        default=(), description="Redacted statements a dry run would have issued"
    )

    @property
    def was_normalized(self) -> bool:
        return self.requested_name != self.resolved_name


class AuditRecord(BaseModel):
    """Append-only row of the accounts CSV."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    database: str
    username: str
    password: str

    def to_row(self) -> list[str]:
        """Render the record as CSV cells, timestamp at minute granularity."""
        return [
            self.timestamp.strftime(AUDIT_TIMESTAMP_FORMAT),
            self.database,
            self.username,
            self.password,
        ]
