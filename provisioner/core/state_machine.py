"""
Provisioning State Machine

This module implements the state machine for a single provisioning attempt.
It rejects invalid transitions and knows which undo steps each state needs.

States:
- VALIDATED: Identifier and host passed their grammars
- CLEARED: Neither the database nor the user exists
- PASSWORD_ASSIGNED: Credential generated
- SCHEMA_CREATED: CREATE DATABASE succeeded
- PRINCIPAL_CREATED: CREATE USER succeeded
- CREATED: GRANT succeeded (terminal)
- SKIPPED: Database or user already existed (terminal)
- DRY_RUN_OK: Dry run stopped before any statement (terminal)
- FAILED: A step failed, compensation attempted (terminal)

Usage:
    >>> from provisioner.core.state_machine import ProvisioningState, ProvisioningStateMachine
    >>>
    >>> ProvisioningStateMachine.can_transition(
    ...     ProvisioningState.SCHEMA_CREATED,
    ...     ProvisioningState.PRINCIPAL_CREATED
    ... )
    True
    >>> ProvisioningStateMachine.compensation_steps(ProvisioningState.PRINCIPAL_CREATED)
    [<Step.DROP_USER: 'drop user'>, <Step.DROP_DATABASE: 'drop database'>]
"""

from enum import Enum
from typing import Dict, List, Optional, Set

from provisioner.config.logging import get_logger
from provisioner.utils.sql import Step

logger = get_logger(__name__)


class ProvisioningState(str, Enum):
    """Provisioning attempt states"""
    VALIDATED = "validated"
    CLEARED = "cleared"
    PASSWORD_ASSIGNED = "password_assigned"
    SCHEMA_CREATED = "schema_created"
    PRINCIPAL_CREATED = "principal_created"
    CREATED = "created"
    SKIPPED = "skipped"
    DRY_RUN_OK = "dry_run_ok"
    FAILED = "failed"


TERMINAL_STATES = frozenset({
    ProvisioningState.CREATED,
    ProvisioningState.SKIPPED,
    ProvisioningState.DRY_RUN_OK,
    ProvisioningState.FAILED,
})


class ProvisioningStateMachine:
    """
    State machine for one provisioning attempt.

    Creation only moves forward one step at a time; every non-terminal
    state can fail, and the undo plan for a failure depends only on the
    state the attempt had reached.
    """

    # Define allowed state transitions
    TRANSITIONS: Dict[ProvisioningState, Set[ProvisioningState]] = {
        ProvisioningState.VALIDATED: {
            ProvisioningState.CLEARED,      # Nothing exists yet
            ProvisioningState.SKIPPED,      # Database or user exists
            ProvisioningState.FAILED,       # Existence check failed
        },
        ProvisioningState.CLEARED: {
            ProvisioningState.PASSWORD_ASSIGNED,
            ProvisioningState.DRY_RUN_OK,   # Dry run never generates a password
            ProvisioningState.FAILED,
        },
        ProvisioningState.PASSWORD_ASSIGNED: {
            ProvisioningState.SCHEMA_CREATED,
            ProvisioningState.FAILED,       # Nothing to undo
        },
        ProvisioningState.SCHEMA_CREATED: {
            ProvisioningState.PRINCIPAL_CREATED,
            ProvisioningState.FAILED,       # Drop database
        },
        ProvisioningState.PRINCIPAL_CREATED: {
            ProvisioningState.CREATED,
            ProvisioningState.FAILED,       # Drop user, then database
        },
        ProvisioningState.CREATED: set(),
        ProvisioningState.SKIPPED: set(),
        ProvisioningState.DRY_RUN_OK: set(),
        ProvisioningState.FAILED: set(),
    }

    # Undo steps, in execution order, for a failure in each state
    COMPENSATIONS: Dict[ProvisioningState, List[Step]] = {
        ProvisioningState.SCHEMA_CREATED: [Step.DROP_DATABASE],
        ProvisioningState.PRINCIPAL_CREATED: [Step.DROP_USER, Step.DROP_DATABASE],
    }

    @classmethod
    def can_transition(
        cls,
        from_state: ProvisioningState,
        to_state: ProvisioningState
    ) -> bool:
        """
        Check if state transition is valid.

        Args:
            from_state: Current attempt state
            to_state: Target state

        Returns:
            True if transition is allowed, False otherwise
        """
        allowed_states = cls.TRANSITIONS.get(from_state, set())
        return to_state in allowed_states

    @classmethod
    def validate_transition(
        cls,
        from_state: ProvisioningState,
        to_state: ProvisioningState,
        name: Optional[str] = None
    ) -> ProvisioningState:
        """
        Validate state transition and raise exception if invalid.

        Args:
            from_state: Current attempt state
            to_state: Target state
            name: Optional identifier for logging

        Returns:
            The target state

        Raises:
            ValueError: If transition is not allowed
        """
        if not cls.can_transition(from_state, to_state):
            error_msg = (
                f"Invalid state transition from {from_state.value} "
                f"to {to_state.value}"
            )
            if name:
                error_msg += f" for '{name}'"

            logger.error(
                "invalid_state_transition",
                name=name,
                from_state=from_state.value,
                to_state=to_state.value,
                allowed_states=sorted(s.value for s in cls.TRANSITIONS.get(from_state, set()))
            )
            raise ValueError(error_msg)

        logger.debug(
            "state_transition",
            name=name,
            from_state=from_state.value,
            to_state=to_state.value
        )
        return to_state

    @classmethod
    def compensation_steps(cls, failed_in: ProvisioningState) -> List[Step]:
        """
        Get the undo steps for a failure in the given state.

        Args:
            failed_in: Last state reached before the failure

        Returns:
            Steps to run, in order; empty when nothing was created
        """
        return list(cls.COMPENSATIONS.get(failed_in, []))

    @staticmethod
    def is_terminal(state: ProvisioningState) -> bool:
        return state in TERMINAL_STATES
