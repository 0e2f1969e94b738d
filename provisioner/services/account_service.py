"""
Account provisioning service.
Creates a database and a same-named user with full rights on it.

The statements involved are non-transactional DDL, so a failed step is
undone by explicit compensating statements (see ProvisioningStateMachine).
"""
from typing import Callable, List, Optional

from provisioner.config.database import ServerSession
from provisioner.config.logging import get_logger
from provisioner.core.state_machine import ProvisioningState, ProvisioningStateMachine
from provisioner.exceptions import (
    AuditWriteError,
    DDLFailureError,
    InvalidIdentifierError,
    InvalidRawInputError,
    RollbackFailureError,
    ServerCommandError,
    TimeoutExceededError,
)
from provisioner.models.account import (
    AuditRecord,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningStatus,
)
from provisioner.services.audit_service import AuditService, ErrorTrail
from provisioner.services.existence_service import ExistenceService
from provisioner.utils import sql
from provisioner.utils.identifiers import HostPattern, Identifier, resolve_identifier
from provisioner.utils.security import DEFAULT_PASSWORD_LENGTH, generate_password

logger = get_logger(__name__)


class ProvisioningService:
    """Service for database/user provisioning."""

    def __init__(
        self,
        session: ServerSession,
        error_trail: ErrorTrail,
        audit: Optional[AuditService] = None,
        password_length: int = DEFAULT_PASSWORD_LENGTH,
        password_generator: Callable[[int], str] = generate_password,
    ):
        self.session = session
        self.existence = ExistenceService(session)
        self.error_trail = error_trail
        self.audit = audit
        self.password_length = password_length
        self.password_generator = password_generator

    def provision(self, request: ProvisioningRequest) -> ProvisioningResult:
        """
        Provision one database/user pair.

        Args:
            request: Provisioning request

        Returns:
            Result with status SKIPPED, DRY_RUN or CREATED

        Raises:
            ValidationError: If the name or host is rejected (nothing was sent)
            ServerCommandError: If the existence check fails
            TimeoutExceededError: If the time budget ran out (rollback attempted)
            DDLFailureError: If a creation step failed (rollback attempted)
        """
        requested = request.raw_name.strip()
        if not requested:
            error_cls = InvalidRawInputError if request.normalize else InvalidIdentifierError
            raise error_cls("empty name")

        name = resolve_identifier(requested, request.normalize)
        host = HostPattern(request.user_host, allow_wildcards=request.allow_wildcard_host)
        state = ProvisioningState.VALIDATED

        log = logger.bind(name=str(name), host=str(host), requested=requested)

        with self.session.deadline(request.timeout_seconds):
            try:
                report = self.existence.check(name, host)
            except ServerCommandError:
                self._advance(state, ProvisioningState.FAILED, name)
                raise

            if report.any_exists:
                self._advance(state, ProvisioningState.SKIPPED, name)
                message = report.describe(name, host)
                log.info("provisioning_skipped", reason=message)
                return ProvisioningResult(
                    status=ProvisioningStatus.SKIPPED,
                    requested_name=requested,
                    resolved_name=str(name),
                    username=str(name),
                    user_host=str(host),
                    message=message,
                )

            state = self._advance(state, ProvisioningState.CLEARED, name)

            if request.dry_run:
                self._advance(state, ProvisioningState.DRY_RUN_OK, name)
                planned = tuple(
                    s.redacted
                    for s in (
                        sql.create_database(name),
                        sql.create_user(name, host, ""),
                        sql.grant_all(name, name, host),
                    )
                )
                log.info("provisioning_dry_run")
                return ProvisioningResult(
                    status=ProvisioningStatus.DRY_RUN,
                    requested_name=requested,
                    resolved_name=str(name),
                    username=str(name),
                    user_host=str(host),
                    message=f"Dry run: '{name}' would be created",
                    planned_statements=planned,
                )

            password = self.password_generator(self.password_length)
            state = self._advance(state, ProvisioningState.PASSWORD_ASSIGNED, name)

            steps = (
                (sql.create_database(name), ProvisioningState.SCHEMA_CREATED),
                (sql.create_user(name, host, password), ProvisioningState.PRINCIPAL_CREATED),
                (sql.grant_all(name, name, host), ProvisioningState.CREATED),
            )
            for statement, next_state in steps:
                self._run_step(statement, state, name, host)
                state = self._advance(state, next_state, name)
                log.info("provisioning_step_completed", step=statement.step.value)

        audit_written = self._write_audit(name, password)

        log.info("provisioning_completed", audit_written=audit_written)

        return ProvisioningResult(
            status=ProvisioningStatus.CREATED,
            requested_name=requested,
            resolved_name=str(name),
            username=str(name),
            user_host=str(host),
            password=password,
            message=f"'{name}' created",
            audit_written=audit_written,
        )

    def _advance(
        self,
        state: ProvisioningState,
        next_state: ProvisioningState,
        name: Identifier,
    ) -> ProvisioningState:
        return ProvisioningStateMachine.validate_transition(state, next_state, str(name))

    def _run_step(
        self,
        statement: sql.Statement,
        state: ProvisioningState,
        name: Identifier,
        host: HostPattern,
    ) -> None:
        """
        Run one creation statement, compensating on failure.

        Raises:
            TimeoutExceededError: Budget exhausted; compensation already attempted
            DDLFailureError: Statement rejected; compensation already attempted
        """
        try:
            self.session.execute(statement)
        except ServerCommandError as e:
            logger.error(
                "provisioning_step_failed",
                name=str(name),
                step=statement.step.value,
                state=state.value,
                error=e.message,
                errno=e.errno,
            )
            rollback_failures = self._compensate(state, name, host)
            self._advance(state, ProvisioningState.FAILED, name)

            if isinstance(e, TimeoutExceededError):
                e.details["step"] = statement.step.value
                e.details["rollback_failures"] = rollback_failures
                raise

            raise DDLFailureError(
                step=statement.step.value,
                name=str(name),
                reason=e.message,
                rollback_failures=rollback_failures,
            ) from e

    def _compensate(
        self,
        failed_in: ProvisioningState,
        name: Identifier,
        host: HostPattern,
    ) -> List[str]:
        """
        Undo whatever the attempt created, newest first.

        Each undo step runs regardless of earlier undo failures.

        Returns:
            Names of the undo steps that failed
        """
        undo = {
            sql.Step.DROP_USER: lambda: sql.drop_user(name, host),
            sql.Step.DROP_DATABASE: lambda: sql.drop_database(name),
        }

        failures: List[str] = []
        for step in ProvisioningStateMachine.compensation_steps(failed_in):
            statement = undo[step]()
            try:
                self.session.execute(statement, bounded=False)
                logger.info("compensation_step_completed", name=str(name), step=step.value)
            except ServerCommandError as e:
                error = RollbackFailureError(step.value, str(name), e.message)
                logger.error(
                    "compensation_step_failed",
                    name=str(name),
                    step=step.value,
                    error=e.message,
                )
                self.error_trail.write(error.message)
                failures.append(step.value)

        return failures

    def _write_audit(self, name: Identifier, password: str) -> bool:
        """Best-effort audit write; a failure is downgraded to a warning."""
        if self.audit is None:
            return False

        try:
            self.audit.append(AuditRecord(database=str(name), username=str(name), password=password))
        except AuditWriteError as e:
            logger.warning("audit_write_downgraded", name=str(name), error=e.message)
            self.error_trail.write(f"WARNING: failed to export CSV for {name}: {e.message}")
            return False

        return True
