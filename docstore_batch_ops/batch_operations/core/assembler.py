"""
Result Assembler

Turns an ExecutionTally into the typed result returned to the caller and,
when logging is enabled, finalizes the operation log and hands the rendered
report to the log writer.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Type

from ..models.entities import (
    CreateResult,
    DeleteResult,
    LogOptions,
    OperationKind,
    OperationOutcome,
    UpdateResult,
    UpsertResult,
)
from ..batch_ops_config import BatchOperationConfig
from ..batch_ops_exceptions import LogPersistenceError
from ..utils.operation_log import OperationLogCollector, OperationLogWriter
from .executor import ExecutionTally

logger = logging.getLogger(__name__)

_RESULT_TYPES: Dict[OperationKind, Type[OperationOutcome]] = {
    OperationKind.CREATE: CreateResult,
    OperationKind.UPDATE: UpdateResult,
    OperationKind.UPSERT: UpsertResult,
    OperationKind.DELETE: DeleteResult,
}


class ResultAssembler:
    """
    Builds operation results.

    Args:
        log_writer: Collaborator that persists rendered reports
        config: Batch operation configuration (log persistence policy)
    """

    def __init__(self, log_writer: OperationLogWriter, config: BatchOperationConfig):
        self._log_writer = log_writer
        self._config = config

    def assemble(
        self,
        kind: OperationKind,
        tally: ExecutionTally,
        log_collector: Optional[OperationLogCollector] = None,
        log_options: Optional[LogOptions] = None,
        explicit_ids: Optional[Sequence[str]] = None
    ) -> OperationOutcome:
        """
        Build the result for a finished invocation.

        ``total_count`` is the number of writes that resolved, which keeps
        ``success_count + failure_count == total_count`` even when the store's
        count was approximate.

        Args:
            kind: Operation that ran
            tally: Final counters from the executor
            log_collector: Collector to finalize, if logging was enabled
            log_options: Where to write the report
            explicit_ids: For create, caller-supplied ids in input order

        Raises:
            LogPersistenceError: If the report could not be written and
                strict_log_persistence is enabled
        """
        if tally.processed != tally.total:
            logger.warning(
                f"[{kind.value}] Planned {tally.total} documents but {tally.processed} writes resolved; "
                f"the match set changed during the operation"
            )

        result_type = _RESULT_TYPES[kind]
        fields = {
            "success_count": tally.success_count,
            "failure_count": tally.failure_count,
            "total_count": tally.processed,
            "failed_doc_ids": list(tally.failed_ids) or None,
        }
        if kind == OperationKind.CREATE:
            fields["created_ids"] = self._created_ids(tally.succeeded_ids, explicit_ids or [])
        elif kind == OperationKind.DELETE:
            fields["deleted_ids"] = list(tally.succeeded_ids)

        result = result_type(**fields)

        if log_collector is not None and log_options is not None and log_options.enabled:
            result.log_file_path = self._persist_log(log_collector, log_options, result)

        return result

    @staticmethod
    def _created_ids(succeeded_ids: Sequence[str], explicit_ids: Sequence[str]) -> List[str]:
        # Explicit ids keep input order; generated ids follow in completion order
        remaining = Counter(succeeded_ids)
        explicit = set(explicit_ids)
        ordered: List[str] = []
        for doc_id in explicit_ids:
            if remaining[doc_id] > 0:
                ordered.append(doc_id)
                remaining[doc_id] -= 1
        ordered.extend(doc_id for doc_id in succeeded_ids if doc_id not in explicit)
        return ordered

    def _persist_log(
        self,
        log_collector: OperationLogCollector,
        log_options: LogOptions,
        result: OperationOutcome
    ) -> Optional[str]:
        log, report = log_collector.finalize()
        try:
            return self._log_writer.write(log, report, log_options)
        except Exception as e:
            if self._config.strict_log_persistence:
                raise LogPersistenceError(f"Failed to write {log.operation.value} report: {e}", outcome=result) from e
            logger.error(f"[{log.operation.value}] Failed to write operation report for '{log.collection}': {e}")
            return None
