"""
Audit logging service.
Append-only CSV of created accounts plus the free-text error trail.

The CSV holds plaintext credentials: both files are created 0600 inside
0700 directories.
"""
import csv
import os
from datetime import datetime
from pathlib import Path

from provisioner.config.logging import get_logger
from provisioner.exceptions import AuditWriteError
from provisioner.models.account import AUDIT_HEADER, AuditRecord

logger = get_logger(__name__)

ERROR_TRAIL_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _open_append(path: Path):
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
    return os.fdopen(fd, "a", encoding="utf-8", newline="")


class AuditService:
    """Service for the accounts CSV."""

    def __init__(self, csv_path: Path):
        self.csv_path = Path(csv_path)

    def append(self, record: AuditRecord) -> None:
        """
        Append one record, writing the header first if the file is new or empty.

        Args:
            record: Record of a created account

        Raises:
            AuditWriteError: If the file cannot be created or written
        """
        try:
            with _open_append(self.csv_path) as f:
                writer = csv.writer(f)
                if os.fstat(f.fileno()).st_size == 0:
                    writer.writerow(AUDIT_HEADER)
                writer.writerow(record.to_row())
        except (OSError, csv.Error) as e:
            logger.error("audit_write_failed", path=str(self.csv_path), error=str(e))
            raise AuditWriteError(str(self.csv_path), str(e)) from e

        logger.info(
            "audit_record_written",
            path=str(self.csv_path),
            database=record.database,
            username=record.username,
        )


class ErrorTrail:
    """Append-only, timestamped error log for operators."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, message: str) -> bool:
        """
        Append one timestamped line.

        The trail is the sink of last resort: a failure to write it is
        reported through the structured log instead of raised.

        Returns:
            True if the line was written
        """
        line = f"[{datetime.now().strftime(ERROR_TRAIL_TIMESTAMP_FORMAT)}] {message}\n"
        try:
            with _open_append(self.path) as f:
                f.write(line)
        except OSError as e:
            logger.warning("error_trail_write_failed", path=str(self.path), error=str(e), message=message)
            return False
        return True
