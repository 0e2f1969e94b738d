"""
Command line entry point.

Creates isolated database/user pairs on a MariaDB server, one name at a
time (-c) or from a batch file (-f).
"""
import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from provisioner.config.credentials import initialize_config, load_credentials
from provisioner.config.database import open_session
from provisioner.config.logging import configure_logging, get_logger
from provisioner.config.settings import Settings
from provisioner.exceptions import EXIT_FAILURE, EXIT_USAGE, ProvisionerError
from provisioner.models.account import ProvisioningRequest, ProvisioningResult, ProvisioningStatus
from provisioner.services.account_service import ProvisioningService
from provisioner.services.audit_service import AuditService, ErrorTrail
from provisioner.services.batch_service import BatchOutcome, BatchService

logger = get_logger(__name__)


def _positive_float(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if seconds <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mariadb-provisioner",
        description="Create isolated MariaDB databases with a same-named user and a generated password.",
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("-c", "--create", metavar="NAME", help="create a single database/user")
    mode.add_argument("-f", "--file", metavar="PATH", type=Path, help="batch process names from a file")
    mode.add_argument("--init", action="store_true", help="interactively write the credentials file")

    parser.add_argument("--config", metavar="PATH", type=Path, help="credentials INI file")
    parser.add_argument("--user-host", metavar="HOST", help="host part of created accounts (default: localhost)")
    parser.add_argument(
        "--allow-wildcard-host",
        action="store_true",
        help="permit '%%' and '_' in --user-host",
    )
    parser.add_argument("--timeout", metavar="SECONDS", type=_positive_float, help="server time budget per name")
    parser.add_argument("--dry-run", action="store_true", help="check and report without creating anything")
    parser.add_argument(
        "--normalize",
        action="store_true",
        help="turn names like 'www.Example.com' into identifiers like 'www_example_com'",
    )
    parser.add_argument(
        "--export-csv",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="append created accounts to the audit CSV",
    )
    parser.add_argument("--csv-path", metavar="PATH", type=Path, help="audit CSV path")
    parser.add_argument("--error-log", metavar="PATH", type=Path, help="error log path")
    parser.add_argument("--log-level", metavar="LEVEL", help="diagnostic log level (default: WARNING)")
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    """
    Apply command line overrides on top of environment-derived settings.

    Overrides go through the same validators as environment values.

    Raises:
        pydantic.ValidationError: If an override is out of range
    """
    overrides: Dict[str, Any] = {
        "config_path": args.config,
        "default_user_host": args.user_host,
        "timeout_seconds": args.timeout,
        "export_csv": args.export_csv,
        "csv_path": args.csv_path,
        "error_log_path": args.error_log,
        "log_level": args.log_level,
    }
    given = {k: v for k, v in overrides.items() if v is not None}
    return Settings.model_validate({**base.model_dump(), **given})


def print_result(result: ProvisioningResult, normalize: bool) -> None:
    if normalize and result.was_normalized:
        print(f"   Requested: {result.requested_name} -> Normalized: {result.resolved_name}")

    if result.status == ProvisioningStatus.SKIPPED:
        print(f"⚠️  {result.message}")
    elif result.status == ProvisioningStatus.DRY_RUN:
        print(f"✅ DRY-RUN OK: {result.resolved_name}")
        for statement in result.planned_statements:
            print(f"   {statement};")
    elif result.status == ProvisioningStatus.CREATED:
        print(f"✅ Success: {result.resolved_name} created.")
        print(f"   Username: {result.username}")
        print(f"   Host:     {result.user_host}")
        print(f"   Password: {result.password}")
        if not result.audit_written:
            print("   (not recorded in the audit CSV)")


def run_single(service: ProvisioningService, request: ProvisioningRequest, error_trail: ErrorTrail) -> int:
    try:
        result = service.provision(request)
    except ProvisionerError as e:
        message = f"{request.raw_name.strip()}: {e.message}"
        print(f"❌ {message}", file=sys.stderr)
        error_trail.write(message)
        return e.exit_code

    print_result(result, request.normalize)
    return 0


def run_batch(
    service: ProvisioningService,
    template: ProvisioningRequest,
    path: Path,
    error_trail: ErrorTrail,
) -> int:
    def show(outcome: BatchOutcome) -> None:
        if outcome.failed:
            print(f"❌ {outcome.error}")
        elif outcome.result is not None:
            print_result(outcome.result, template.normalize)

    batch = BatchService(service, error_trail, template)
    try:
        report = batch.process_file(path, on_outcome=show)
    except OSError as e:
        message = f"Could not read batch file {path}: {e}"
        print(f"❌ {message}", file=sys.stderr)
        error_trail.write(message)
        return EXIT_FAILURE

    return EXIT_FAILURE if report.failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args, Settings())
    except PydanticValidationError as e:
        print(f"❌ Invalid settings: {e}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(settings)
    error_trail = ErrorTrail(settings.error_log_path)

    if args.init:
        if initialize_config(settings.config_path, settings.config_section):
            print(f"✅ {settings.config_path} created (0600).")
        return 0

    try:
        credentials = load_credentials(settings.config_path, settings.config_section)
        session = open_session(credentials, settings.timeout_seconds)
    except ProvisionerError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        error_trail.write(e.message)
        return e.exit_code

    template = ProvisioningRequest(
        raw_name=args.create or "",
        user_host=settings.default_user_host,
        allow_wildcard_host=args.allow_wildcard_host,
        normalize=args.normalize,
        dry_run=args.dry_run,
        timeout_seconds=settings.timeout_seconds,
    )

    with session:
        service = ProvisioningService(
            session,
            error_trail,
            audit=AuditService(settings.csv_path) if settings.export_csv else None,
            password_length=settings.password_length,
        )
        if args.create is not None:
            return run_single(service, template, error_trail)
        return run_batch(service, template, args.file, error_trail)


if __name__ == "__main__":
    sys.exit(main())
