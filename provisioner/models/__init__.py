"""
Data models for the provisioner.
"""
from provisioner.models.account import (
    AuditRecord,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningStatus,
)
from provisioner.models.server import ServerCredentials

__all__ = [
    "AuditRecord",
    "ProvisioningRequest",
    "ProvisioningResult",
    "ProvisioningStatus",
    "ServerCredentials",
]
