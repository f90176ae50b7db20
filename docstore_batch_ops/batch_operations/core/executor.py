"""
Paginated Batch Executor

Drives write sessions over the documents matched by a QueryPlan (or over an
explicit list of writes for create) and accounts for every outcome.

Execution modes:

- Unbounded (no page size): one fetch of the whole match set, one write
  session.
- Paginated (page size N): a count query fixes the total up front, then
  pages of at most N documents are fetched with a start-after cursor. Each
  page gets its own write session, which is fully drained before the cursor
  advances, so no write from page K+1 is dispatched before page K resolves.

Completion notifications may arrive on any thread and in any order. They are
forwarded into an asyncio queue and consumed by a single aggregator task,
which is the only code that mutates the counters, appends log entries and
invokes the progress callback.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..models.entities import LogStatus, OperationKind, ProgressCallback, QueryPlan
from ..batch_ops_config import BatchOperationConfig
from ..batch_ops_exceptions import BatchOperationError, QueryExecutionError
from ..utils.operation_log import OperationLogCollector
from ..utils.progress import calculate_progress
from ..utils.retry import retry_transient_read
from .query_plan import QueryPlanBuilder
from ...store_backends.base import DocumentRef, DocumentStore, StoredDocument, WriteChannel, WriteCompletion

logger = logging.getLogger(__name__)

UNKNOWN_DOCUMENT_ID = "unknown"

# Marks the end of one session's notifications in the mailbox
_SESSION_DRAINED = object()

# (document reference, payload) for one enqueued write
WriteItem = Tuple[DocumentRef, Optional[Dict[str, Any]]]


@dataclass
class ExecutionTally:
    """
    Running counters for one invocation.

    Mutated only by the aggregator task. ``succeeded_ids`` is in completion
    order.
    """
    total: int = 0
    processed: int = 0
    success_count: int = 0
    failure_count: int = 0
    failed_ids: List[str] = field(default_factory=list)
    succeeded_ids: List[str] = field(default_factory=list)
    pages: int = 0
    sessions: int = 0

    def record(self, completion: WriteCompletion) -> str:
        """Count one completion and return the document id it was attributed to."""
        self.processed += 1
        document_id = completion.document_id or UNKNOWN_DOCUMENT_ID
        if completion.success:
            self.success_count += 1
            self.succeeded_ids.append(document_id)
        else:
            self.failure_count += 1
            self.failed_ids.append(document_id)
        return document_id


class PaginatedBatchExecutor:
    """
    Orchestrates reads and write sessions for one batch operation at a time.

    The executor holds no per-invocation state; everything an invocation
    needs is passed to ``execute_query_mutation`` or ``execute_writes``.

    Args:
        store: Document store the operation runs against
        config: Batch operation configuration (read retry settings)
    """

    def __init__(self, store: DocumentStore, config: BatchOperationConfig):
        self._store = store
        self._config = config

    async def execute_query_mutation(
        self,
        plan: QueryPlan,
        kind: OperationKind,
        data: Optional[Dict[str, Any]] = None,
        page_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        log_collector: Optional[OperationLogCollector] = None
    ) -> ExecutionTally:
        """
        Apply ``kind`` to every document matched by ``plan``.

        Args:
            plan: Base query plan
            kind: UPDATE, UPSERT or DELETE
            data: Patch for UPDATE/UPSERT, None for DELETE
            page_size: Documents per page, None for unbounded mode
            on_progress: Called after each completion with a ProgressInfo
            log_collector: Receives one entry per completion when logging is on

        Returns:
            The final ExecutionTally

        Raises:
            QueryExecutionError: If the count or a page fetch fails
        """
        if kind == OperationKind.CREATE:
            raise ValueError("Create does not run against a query; use execute_writes")

        tally = ExecutionTally()

        if page_size is None:
            documents = await self._read(lambda: self._store.fetch(plan), plan, "fetch")
            tally.total = len(documents)
            tally.pages = 1
            if tally.total == 0:
                logger.debug(f"[{kind.value}] No documents matched in '{plan.collection}'")
                return tally

            await self._run_session(kind, self._writes_for(documents, data), tally, on_progress, log_collector)
            return tally

        tally.total = await self._read(lambda: self._store.count(plan), plan, "count")
        if tally.total == 0:
            logger.debug(f"[{kind.value}] No documents matched in '{plan.collection}'")
            return tally

        logger.debug(
            f"[{kind.value}] {tally.total} documents matched in '{plan.collection}', "
            f"processing in pages of {page_size}"
        )

        cursor: Optional[StoredDocument] = None
        fetched = 0

        while True:
            page_limit = page_size
            if plan.limit is not None:
                remaining = plan.limit - fetched
                if remaining <= 0:
                    break
                page_limit = min(page_size, remaining)

            request = QueryPlanBuilder.page(plan, page_limit, cursor)
            documents = await self._read(
                lambda: self._store.fetch(request.plan, start_after=request.start_after),
                plan,
                "fetch"
            )
            if not documents:
                break

            tally.pages += 1
            fetched += len(documents)
            logger.debug(
                f"[{kind.value}] Page {tally.pages}: {len(documents)} documents "
                f"({tally.processed}/{tally.total} processed before this page)"
            )

            await self._run_session(kind, self._writes_for(documents, data), tally, on_progress, log_collector)

            cursor = documents[-1]
            if len(documents) < page_limit:
                break

        return tally

    async def execute_writes(
        self,
        kind: OperationKind,
        writes: Sequence[WriteItem],
        page_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        log_collector: Optional[OperationLogCollector] = None
    ) -> ExecutionTally:
        """
        Apply ``kind`` to an explicit list of writes (used by create).

        With a page size the list is split into consecutive chunks, each
        written and drained in its own session.
        """
        tally = ExecutionTally(total=len(writes))
        if not writes:
            return tally

        chunk_size = page_size or len(writes)
        for start in range(0, len(writes), chunk_size):
            tally.pages += 1
            await self._run_session(kind, writes[start:start + chunk_size], tally, on_progress, log_collector)

        return tally

    async def fetch_all(self, plan: QueryPlan) -> List[StoredDocument]:
        """Fetch every document matched by ``plan`` in one read."""
        return await self._read(lambda: self._store.fetch(plan), plan, "fetch")

    async def _read(
        self,
        operation: Callable[[], Awaitable[Any]],
        plan: QueryPlan,
        phase: str
    ) -> Any:
        try:
            return await retry_transient_read(operation, self._config, f"{phase} on '{plan.collection}'")
        except QueryExecutionError:
            raise
        except Exception as e:
            logger.error(f"[{phase}] Query on collection '{plan.collection}' failed: {e}")
            raise QueryExecutionError(
                f"Failed to {phase} documents in '{plan.collection}': {e}",
                collection=plan.collection,
                phase=phase
            ) from e

    @staticmethod
    def _writes_for(documents: Sequence[StoredDocument], data: Optional[Dict[str, Any]]) -> List[WriteItem]:
        return [(doc.ref, data) for doc in documents]

    @staticmethod
    def _enqueue(channel: WriteChannel, kind: OperationKind, ref: DocumentRef, data: Optional[Dict[str, Any]]) -> None:
        if kind == OperationKind.UPDATE:
            channel.update(ref, data)
        elif kind == OperationKind.UPSERT:
            channel.set(ref, data, merge=True)
        elif kind == OperationKind.DELETE:
            channel.delete(ref)
        elif kind == OperationKind.CREATE:
            channel.create(ref, data)
        else:
            raise BatchOperationError(f"Unsupported operation kind: {kind}")

    async def _run_session(
        self,
        kind: OperationKind,
        writes: Sequence[WriteItem],
        tally: ExecutionTally,
        on_progress: Optional[ProgressCallback],
        log_collector: Optional[OperationLogCollector]
    ) -> None:
        """Open one write session, enqueue ``writes``, and wait for full drain."""
        loop = asyncio.get_running_loop()
        mailbox: asyncio.Queue = asyncio.Queue()

        channel = self._store.bulk_writer()
        tally.sessions += 1
        channel.on_completion(lambda completion: loop.call_soon_threadsafe(mailbox.put_nowait, completion))

        def enqueue_writes() -> None:
            for ref, data in writes:
                self._enqueue(channel, kind, ref, data)

        aggregator = asyncio.create_task(self._aggregate(mailbox, tally, on_progress, log_collector))
        try:
            try:
                await channel.enqueue_all(enqueue_writes)
            finally:
                await channel.close()
        finally:
            # Notifications were scheduled before close() resolved, so the marker lands after them
            mailbox.put_nowait(_SESSION_DRAINED)
            await aggregator

        logger.debug(
            f"[{kind.value}] Session {tally.sessions} drained: "
            f"{tally.success_count} succeeded, {tally.failure_count} failed so far"
        )

    @staticmethod
    async def _aggregate(
        mailbox: asyncio.Queue,
        tally: ExecutionTally,
        on_progress: Optional[ProgressCallback],
        log_collector: Optional[OperationLogCollector]
    ) -> None:
        while True:
            completion = await mailbox.get()
            if completion is _SESSION_DRAINED:
                return

            document_id = tally.record(completion)

            if log_collector is not None:
                if completion.success:
                    log_collector.record(document_id, LogStatus.SUCCESS)
                else:
                    log_collector.record(document_id, LogStatus.FAILURE, completion.error)

            if on_progress is not None:
                on_progress(calculate_progress(tally.processed, tally.total))
