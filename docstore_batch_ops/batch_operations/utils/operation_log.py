"""
Operation Log Utilities

Collects per-document outcomes during a batch invocation and renders them as
a fixed-layout plain text report. Writing the report to disk is delegated to
OperationLogWriter so the collector itself performs no I/O.

Typical usage:

    collector = OperationLogCollector.start(OperationKind.UPDATE, "users", conditions, patch)
    collector.record("user-1", LogStatus.SUCCESS)
    collector.record("user-2", LogStatus.FAILURE, "NOT_FOUND: no document to update")
    log, report = collector.finalize()
    path = OperationLogWriter().write(log, report, LogOptions(enabled=True))
"""

import json
import logging
import os
import threading
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models.entities import (
    FilterCondition,
    LogEntry,
    LogOptions,
    LogStatus,
    LogSummary,
    OperationKind,
    OperationLog,
)

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 60
DEFAULT_LOG_PATH = "./logs"


def get_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2024-05-01T10:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_log_filename(operation: str) -> str:
    """Default report filename: ``<operation>-<YYYY-MM-DDTHH-MM-SS>.log``."""
    timestamp = get_timestamp().replace(":", "-").replace(".", "-")[:19]
    return f"{operation}-{timestamp}.log"


def format_value(value: Any) -> str:
    """Render a condition value: dates as ISO-8601, strings quoted, everything else via str()."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return format_value(value)
    return str(value)


def format_operation_log(log: OperationLog) -> str:
    """
    Render an operation log as the plain text report.

    The layout is fixed: header with upper-cased operation, collection and
    timestamps, optional Conditions and Update Data blocks, SUMMARY counts,
    and a DETAILS block with one line per entry in recorded order.
    """
    lines: List[str] = [
        SEPARATOR,
        "DOCUMENT STORE BATCH OPERATION LOG",
        SEPARATOR,
        "",
        f"Operation: {log.operation.value.upper()}",
        f"Collection: {log.collection}",
        f"Started: {log.started_at}",
        f"Completed: {log.completed_at}",
        "",
    ]

    if log.conditions:
        lines.append("Conditions:")
        for condition in log.conditions:
            lines.append(f"  - {condition.field} {condition.operator} {format_value(condition.value)}")
        lines.append("")

    if log.update_data:
        lines.append("Update Data:")
        rendered = json.dumps(log.update_data, indent=2, default=_json_default, ensure_ascii=False)
        lines.append("  " + rendered.replace("\n", "\n  "))
        lines.append("")

    lines.extend([
        SEPARATOR,
        "SUMMARY",
        SEPARATOR,
        f"Total: {log.summary.total_count}",
        f"Success: {log.summary.success_count}",
        f"Failure: {log.summary.failure_count}",
        "",
    ])

    if log.entries:
        lines.extend([SEPARATOR, "DETAILS", SEPARATOR, ""])
        for entry in log.entries:
            label = "[SUCCESS]" if entry.status == LogStatus.SUCCESS else "[FAILURE]"
            lines.append(f"{entry.timestamp} {label} {entry.document_id}")
            if entry.error:
                lines.append(f"  Error: {entry.error}")

    lines.extend(["", SEPARATOR, "END OF LOG", SEPARATOR])
    return "\n".join(lines)


class OperationLogCollector:
    """
    Append-only accumulator of per-document outcomes for one invocation.

    ``record`` may be called from several completion notifications at once;
    appends are serialized with a lock so no entry is lost or interleaved.
    """

    def __init__(
        self,
        operation: OperationKind,
        collection: str,
        conditions: Optional[Sequence[FilterCondition]] = None,
        update_data: Optional[Dict[str, Any]] = None,
        started_at: Optional[str] = None
    ):
        self.operation = operation
        self.collection = collection
        self.conditions = list(conditions or [])
        self.update_data = dict(update_data) if update_data else None
        self.started_at = started_at or get_timestamp()
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()
        self._finalized = False

    @classmethod
    def start(
        cls,
        operation: OperationKind,
        collection: str,
        conditions: Optional[Sequence[FilterCondition]] = None,
        update_data: Optional[Dict[str, Any]] = None
    ) -> "OperationLogCollector":
        """Capture the start timestamp and return a fresh collector."""
        return cls(operation, collection, conditions, update_data)

    def record(self, document_id: str, status: LogStatus, error: Optional[str] = None) -> None:
        """Append an entry stamped with the current time."""
        entry = LogEntry(
            timestamp=get_timestamp(),
            document_id=document_id,
            status=status,
            error=error if status == LogStatus.FAILURE else None
        )
        with self._lock:
            if self._finalized:
                raise RuntimeError("Cannot record entries after the operation log was finalized")
            self._entries.append(entry)

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self) -> OperationLog:
        """Build an OperationLog from the entries collected so far."""
        with self._lock:
            entries = list(self._entries)

        success_count = sum(1 for e in entries if e.status == LogStatus.SUCCESS)
        return OperationLog(
            operation=self.operation,
            collection=self.collection,
            started_at=self.started_at,
            completed_at=get_timestamp(),
            conditions=self.conditions,
            update_data=self.update_data,
            summary=LogSummary(
                total_count=len(entries),
                success_count=success_count,
                failure_count=len(entries) - success_count
            ),
            entries=entries
        )

    def finalize(self) -> Tuple[OperationLog, str]:
        """
        Stamp the completion time, compute the summary and render the report.

        Returns:
            The immutable OperationLog and its rendered report text
        """
        log = self.snapshot()
        with self._lock:
            self._finalized = True
            # Ownership moves to the writer; drop the in-memory copy
            self._entries = []
        return log, format_operation_log(log)


class OperationLogWriter:
    """
    Persists rendered reports to the filesystem.

    Args:
        default_path: Directory used when LogOptions does not name one
    """

    def __init__(self, default_path: str = DEFAULT_LOG_PATH):
        self._default_path = default_path

    def write(self, log: OperationLog, report: str, options: LogOptions) -> str:
        """
        Write ``report`` and return the full path of the created file.

        Raises:
            OSError: If the directory cannot be created or the file written
        """
        log_path = options.path or self._default_path
        filename = options.filename or generate_log_filename(log.operation.value)
        full_path = os.path.join(log_path, filename)

        os.makedirs(log_path, exist_ok=True)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(report)

        logger.info(
            f"Wrote {log.operation.value} report for '{log.collection}' "
            f"({log.summary.total_count} entries) to {full_path}"
        )
        return full_path
