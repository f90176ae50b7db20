"""
Invocation Timing

Records how long each batch invocation took and how much work it did
(documents resolved, pages read, write sessions drained), and aggregates
that into per-operation throughput statistics. History is bounded so a
long-lived updater does not grow without limit.
"""

import time
import logging
import statistics
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class TimingResult(BaseModel):
    """
    Timing of one batch invocation.

    Attributes:
        operation_name: Operation kind ("update", "upsert", "delete", "create")
        collection: Collection the invocation ran against
        execution_time: Wall-clock duration in seconds
        timestamp: When the invocation started
        success: False when the invocation raised (failed read, bad config)
        documents_processed: Writes resolved, successful or not
        failure_count: Writes that resolved as failures
        pages: Pages read (or create chunks written)
        sessions: Write sessions opened and drained
        metadata: Extra invocation details such as page size
    """
    operation_name: str
    collection: str
    execution_time: float = Field(0.0, description="Execution time in seconds")
    timestamp: datetime = Field(default_factory=datetime.now)
    success: bool = True
    documents_processed: int = 0
    failure_count: int = 0
    pages: int = 0
    sessions: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def documents_per_second(self) -> float:
        if self.execution_time <= 0:
            return 0.0
        return self.documents_processed / self.execution_time

    def record_counts(self, processed: int, failures: int, pages: int, sessions: int) -> None:
        """Attach the work counters of the finished invocation."""
        self.documents_processed = processed
        self.failure_count = failures
        self.pages = pages
        self.sessions = sessions


class OperationTimingStats(BaseModel):
    """
    Aggregated timing for every recorded invocation of one operation kind.
    """
    operation_name: str
    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    total_documents: int = 0
    total_write_failures: int = 0
    average_pages: float = 0.0
    average_execution_time: float = 0.0
    median_execution_time: float = 0.0
    max_execution_time: float = 0.0
    p95_execution_time: float = 0.0
    documents_per_second: float = 0.0

    @property
    def success_rate(self) -> float:
        """Share of invocations that completed without raising, as a percentage."""
        if self.total_operations == 0:
            return 0.0
        return (self.successful_operations / self.total_operations) * 100.0


class PerformanceTimer:
    """
    Times batch invocations and keeps the most recent ``history_size`` results.

    Shared by an updater and every updater derived from it through the
    query methods.
    """

    def __init__(self, history_size: int = 1000, enable_logging: bool = True):
        self._enable_logging = enable_logging
        self._timing_history: Deque[TimingResult] = deque(maxlen=history_size)

    @asynccontextmanager
    async def time_operation(
        self,
        operation_name: str,
        collection: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """
        Time the wrapped invocation.

        Yields a TimingResult; the caller fills in the work counters with
        ``record_counts`` before the block exits.
        """
        start_time = time.perf_counter()
        result = TimingResult(
            operation_name=operation_name,
            collection=collection,
            metadata=metadata or {}
        )

        try:
            yield result
        except Exception:
            result.success = False
            raise
        finally:
            result.execution_time = time.perf_counter() - start_time
            self._timing_history.append(result)

            if self._enable_logging:
                status = "completed" if result.success else "raised"
                logger.debug(
                    f"[{operation_name}] '{collection}' {status} in {result.execution_time*1000:.2f}ms: "
                    f"{result.documents_processed} documents, {result.pages} pages, "
                    f"{result.sessions} sessions ({result.documents_per_second:.1f} docs/s)"
                )

    def get_timing_history(self) -> List[TimingResult]:
        return list(self._timing_history)

    def get_operation_stats(self, operation_name: str) -> Optional[OperationTimingStats]:
        """
        Aggregate the retained results for one operation kind.

        Returns:
            OperationTimingStats, or None if nothing was recorded for the name
        """
        results = [r for r in self._timing_history if r.operation_name == operation_name]
        if not results:
            return None

        execution_times = [r.execution_time for r in results]
        successful = sum(1 for r in results if r.success)
        total_documents = sum(r.documents_processed for r in results)
        total_time = sum(execution_times)

        return OperationTimingStats(
            operation_name=operation_name,
            total_operations=len(results),
            successful_operations=successful,
            failed_operations=len(results) - successful,
            total_documents=total_documents,
            total_write_failures=sum(r.failure_count for r in results),
            average_pages=statistics.mean(r.pages for r in results),
            average_execution_time=statistics.mean(execution_times),
            median_execution_time=statistics.median(execution_times),
            max_execution_time=max(execution_times),
            p95_execution_time=statistics.quantiles(execution_times, n=20)[18] if len(execution_times) > 1 else execution_times[0],
            documents_per_second=total_documents / total_time if total_time > 0 else 0.0
        )

    def get_summary(self) -> Dict[str, OperationTimingStats]:
        """Statistics for every operation kind still in the history."""
        return {
            name: self.get_operation_stats(name)
            for name in {r.operation_name for r in self._timing_history}
        }

    def clear_history(self):
        self._timing_history.clear()
