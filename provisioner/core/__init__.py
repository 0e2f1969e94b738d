"""
Core functionality for account provisioning.

This package provides the state machine that orders creation steps and
plans compensation for a failed attempt.
"""

from provisioner.core.state_machine import ProvisioningState, ProvisioningStateMachine

__all__ = [
    "ProvisioningState",
    "ProvisioningStateMachine",
]
