"""
Batch provisioning service.
Runs every record of a name list through the provisioning service,
isolating failures per record.

Record format, one name per line:
- blank lines are ignored
- lines starting with '#' or ';' are comments
- anything from the first '#' or ';' on a line is an inline comment
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from provisioner.config.logging import get_logger
from provisioner.exceptions import ProvisionerError
from provisioner.models.account import ProvisioningRequest, ProvisioningResult
from provisioner.services.account_service import ProvisioningService
from provisioner.services.audit_service import ErrorTrail

logger = get_logger(__name__)

COMMENT_MARKERS = ("#", ";")


@dataclass(frozen=True)
class BatchOutcome:
    """One processed record: a result or the error it failed with."""

    line_no: int
    raw: str
    result: Optional[ProvisioningResult] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class BatchReport:
    """All outcomes, in source order."""

    outcomes: List[BatchOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[BatchOutcome]:
        return [o for o in self.outcomes if o.failed]

    @property
    def results(self) -> List[ProvisioningResult]:
        return [o.result for o in self.outcomes if o.result is not None]


def parse_record(line: str) -> Optional[str]:
    """
    Extract the name from one line of a batch file.

    Returns:
        The name, or None for blank and comment lines
    """
    raw = line.strip()
    if not raw or raw.startswith(COMMENT_MARKERS):
        return None

    cut = [i for i in (raw.find(marker) for marker in COMMENT_MARKERS) if i >= 0]
    if cut:
        raw = raw[: min(cut)].strip()

    return raw or None


def iter_records(lines: Iterable[str]) -> Iterator[Tuple[int, str]]:
    """Yield (line number, name) pairs, numbering lines from 1."""
    for line_no, line in enumerate(lines, start=1):
        raw = parse_record(line)
        if raw is not None:
            yield line_no, raw


class BatchService:
    """Service for batch provisioning."""

    def __init__(
        self,
        provisioning: ProvisioningService,
        error_trail: ErrorTrail,
        template: ProvisioningRequest,
    ):
        """
        Args:
            provisioning: Service that handles each record
            error_trail: Receives one line per failed record
            template: Request options shared by every record; raw_name is replaced
        """
        self.provisioning = provisioning
        self.error_trail = error_trail
        self.template = template

    def process_lines(
        self,
        lines: Iterable[str],
        on_outcome: Optional[Callable[[BatchOutcome], None]] = None,
    ) -> BatchReport:
        """
        Provision every record; a failing record never stops the batch.

        Args:
            lines: Source lines
            on_outcome: Called after each record, in source order

        Returns:
            Batch report
        """
        report = BatchReport()

        for line_no, raw in iter_records(lines):
            request = self.template.model_copy(update={"raw_name": raw})
            try:
                outcome = BatchOutcome(line_no, raw, result=self.provisioning.provision(request))
            except ProvisionerError as e:
                outcome = self._record_failure(line_no, raw, e.message)
            except Exception as e:
                logger.exception("batch_record_unexpected_error", line_no=line_no, raw=raw)
                outcome = self._record_failure(line_no, raw, f"unexpected error: {e}")

            report.outcomes.append(outcome)
            if on_outcome is not None:
                on_outcome(outcome)

        logger.info(
            "batch_completed",
            records=len(report.outcomes),
            failures=len(report.failures),
        )

        return report

    def process_file(
        self,
        path: Path,
        on_outcome: Optional[Callable[[BatchOutcome], None]] = None,
    ) -> BatchReport:
        """
        Provision every record of a batch file.

        Undecodable bytes become U+FFFD, so such a line fails as its own
        record instead of aborting the batch.

        Raises:
            OSError: If the file cannot be opened
        """
        logger.info("batch_started", path=str(path))
        with open(path, encoding="utf-8", errors="replace") as f:
            return self.process_lines(f, on_outcome)

    def _record_failure(self, line_no: int, raw: str, reason: str) -> BatchOutcome:
        message = f"Line {line_no} ({raw}): {reason}"
        logger.warning("batch_record_failed", line_no=line_no, raw=raw, error=reason)
        self.error_trail.write(message)
        return BatchOutcome(line_no, raw, error=message)
