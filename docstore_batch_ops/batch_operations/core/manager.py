"""
Core Batch Updater

Provides the primary interface for batch mutations on a document store.
Select a collection, narrow it with conditions, ordering and a limit, then
preview, update, upsert, delete, create or read fields in bulk.

Typical usage from external projects:

    from docstore_batch_ops.batch_operations import BatchUpdater, LogOptions
    from docstore_batch_ops.store_backends import FirestoreDocumentStore

    updater = BatchUpdater(FirestoreDocumentStore(client))

    result = await (
        updater.collection("users")
        .where("status", "==", "inactive")
        .where("lastLoginAt", "<", cutoff)
        .update(
            {"status": "archived"},
            page_size=500,
            log=LogOptions(enabled=True)
        )
    )
    if result.failed_doc_ids:
        logger.warning(f"{result.failure_count} documents were not archived")
"""

import copy
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..models.entities import (
    BatchOptions,
    CreateDocumentInput,
    CreateResult,
    DeleteResult,
    DocumentPreview,
    FieldValue,
    LogOptions,
    OperationKind,
    OperationOutcome,
    PreviewResult,
    ProgressCallback,
    QueryPlan,
    SortDirection,
    UpdateResult,
    UpsertResult,
)
from ..batch_ops_config import BatchOperationConfig
from ..utils.operation_log import OperationLogCollector, OperationLogWriter
from ..utils.timing import OperationTimingStats, PerformanceTimer, TimingResult
from .assembler import ResultAssembler
from .executor import ExecutionTally, PaginatedBatchExecutor
from .query_plan import QueryPlanBuilder
from .validator import BatchValidator
from ...store_backends.base import DocumentStore
from ..utils.field_paths import get_field

logger = logging.getLogger(__name__)


class BatchUpdater:
    """
    High-level, asynchronous interface for batch operations on one store.

    Query methods (``collection``, ``where``, ``order_by``, ``limit``) return
    a new BatchUpdater that shares the store, configuration, executor and
    timer but carries its own query state. The instance they are called on
    is never modified, so one updater can safely serve concurrent callers.

    Per-document write failures never raise. They are counted in the result
    (``failure_count``, ``failed_doc_ids``) and left to the caller to retry.
    Configuration errors and failed reads raise before anything is written.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: Optional[BatchOperationConfig] = None,
        log_writer: Optional[OperationLogWriter] = None,
        _builder: Optional[QueryPlanBuilder] = None,
        _timer: Optional[PerformanceTimer] = None
    ):
        """
        Initialize BatchUpdater with injected dependencies.

        Args:
            store: Document store to operate on
            config: Configuration for batch operations. If None, uses default settings.
            log_writer: Persists operation reports. Defaults to a file writer
                        rooted at ``config.default_log_path``.

        Example:
            ```python
            updater = BatchUpdater(store)

            config = BatchOperationConfig(default_page_size=500)
            updater = BatchUpdater(store, config=config)
            ```
        """
        self._store = store
        self._config = config or BatchOperationConfig()
        self._log_writer = log_writer or OperationLogWriter(self._config.default_log_path)
        self._builder = _builder or QueryPlanBuilder()
        self._timer = _timer or PerformanceTimer(
            history_size=self._config.timing_history_size,
            enable_logging=self._config.enable_timing
        )

        self._executor = PaginatedBatchExecutor(store, self._config)
        self._assembler = ResultAssembler(self._log_writer, self._config)

    # ------------------------------------------------------------------
    # Query building
    # ------------------------------------------------------------------

    def _derive(self, builder: QueryPlanBuilder) -> "BatchUpdater":
        return BatchUpdater(
            self._store,
            config=self._config,
            log_writer=self._log_writer,
            _builder=builder,
            _timer=self._timer
        )

    def collection(self, path: str) -> "BatchUpdater":
        """Select a collection; previous conditions, ordering and limit are dropped."""
        return self._derive(self._builder.collection(path))

    def where(self, field: str, operator: str, value: Any) -> "BatchUpdater":
        """Add a filter condition. Conditions are combined with AND."""
        return self._derive(self._builder.where(field, operator, value))

    def order_by(self, field: str, direction: Union[SortDirection, str] = SortDirection.ASCENDING) -> "BatchUpdater":
        """Order matched documents by a single field."""
        return self._derive(self._builder.order_by(field, direction))

    def limit(self, limit: int) -> "BatchUpdater":
        """Cap the number of matched documents."""
        return self._derive(self._builder.limit(limit))

    def build_plan(self) -> QueryPlan:
        """Return the QueryPlan for the current query state."""
        return self._builder.build()

    # ------------------------------------------------------------------
    # Read-only operations
    # ------------------------------------------------------------------

    async def preview(self, update_data: Mapping[str, Any]) -> PreviewResult:
        """
        Show what an update would do without writing anything.

        ``after`` for each sample is the fetched document shallow-merged with
        the patch, patch keys winning.

        Args:
            update_data: Proposed patch

        Returns:
            PreviewResult with the affected count, patch keys and up to
            ``preview_sample_size`` samples

        Raises:
            CollectionNotSelectedError: If no collection was selected
            InvalidPayloadError: If the patch is empty or not a mapping
            QueryExecutionError: If the fetch fails
        """
        plan = self._builder.build()
        patch = BatchValidator.validate_update_data(update_data)

        documents = await self._executor.fetch_all(plan)

        samples = []
        for doc in documents[:self._config.preview_sample_size]:
            before = copy.deepcopy(doc.data)
            after = {**copy.deepcopy(doc.data), **copy.deepcopy(patch)}
            samples.append(DocumentPreview(id=doc.id, before=before, after=after))

        logger.info(f"[preview] {len(documents)} documents in '{plan.collection}' would be affected")
        return PreviewResult(
            affected_count=len(documents),
            affected_fields=list(patch.keys()),
            samples=samples
        )

    async def get_fields(self, field_path: str) -> List[FieldValue]:
        """
        Read one field from every matched document.

        Args:
            field_path: Field path, dotted for nested fields

        Returns:
            One FieldValue per matched document; ``value`` is None where the
            field is absent
        """
        plan = self._builder.build()
        if not isinstance(field_path, str) or not field_path:
            raise ValueError("field_path must be a non-empty string")

        documents = await self._executor.fetch_all(plan)

        results = []
        for doc in documents:
            results.append(FieldValue(id=doc.id, value=get_field(doc.data, field_path, None)))
        return results

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def update(
        self,
        update_data: Mapping[str, Any],
        options: Optional[BatchOptions] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        log: Optional[LogOptions] = None,
        page_size: Optional[int] = None
    ) -> UpdateResult:
        """
        Merge a patch into every matched document.

        Documents that no longer exist when their write is applied are
        reported as failures.

        Args:
            update_data: Patch; dotted keys address nested fields
            options: BatchOptions; keyword arguments override its fields
            on_progress: Called after every resolved write with a ProgressInfo
            log: Report options
            page_size: Documents per page; unset reads all matches at once

        Returns:
            UpdateResult with success/failure counts and optional report path

        Raises:
            CollectionNotSelectedError: If no collection was selected
            InvalidPayloadError: If the patch is empty or not a mapping
            InvalidPageSizeError: If page_size is not positive or too large
            QueryExecutionError: If the count or a fetch fails
        """
        return await self._run_query_mutation(OperationKind.UPDATE, update_data, options, on_progress, log, page_size)

    async def upsert(
        self,
        update_data: Mapping[str, Any],
        options: Optional[BatchOptions] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        log: Optional[LogOptions] = None,
        page_size: Optional[int] = None
    ) -> UpsertResult:
        """
        Set-with-merge a patch onto every matched document.

        Same arguments, result shape and errors as ``update``.
        """
        return await self._run_query_mutation(OperationKind.UPSERT, update_data, options, on_progress, log, page_size)

    async def delete(
        self,
        options: Optional[BatchOptions] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        log: Optional[LogOptions] = None,
        page_size: Optional[int] = None
    ) -> DeleteResult:
        """
        Delete every matched document.

        Returns:
            DeleteResult whose ``deleted_ids`` lists removed documents in
            completion order
        """
        return await self._run_query_mutation(OperationKind.DELETE, None, options, on_progress, log, page_size)

    async def create(
        self,
        documents: Sequence[Union[CreateDocumentInput, Mapping[str, Any]]],
        options: Optional[BatchOptions] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        log: Optional[LogOptions] = None,
        page_size: Optional[int] = None
    ) -> CreateResult:
        """
        Create documents in the selected collection.

        Conditions, ordering and limit are ignored. Items without an ``id``
        get a store-generated one. Creating a document that already exists
        is reported as a failure.

        Args:
            documents: CreateDocumentInput items or mappings with ``data`` and optional ``id``
            page_size: When set, documents are written in sessions of this size

        Returns:
            CreateResult whose ``created_ids`` lists explicit ids in input
            order followed by generated ids in completion order

        Raises:
            CollectionNotSelectedError: If no collection was selected
            InvalidPayloadError: If the list is empty or an item has no data
            InvalidPageSizeError: If page_size is not positive or too large
        """
        plan = self._builder.build()
        inputs = BatchValidator.validate_create_documents(documents)
        resolved = self._resolve_options(options, on_progress, log, page_size)
        chunk_size = self._config.validate_page_size(resolved.page_size)

        writes = [(self._store.document_ref(plan.collection, doc.id), doc.data) for doc in inputs]
        explicit_ids = [doc.id for doc in inputs if doc.id is not None]

        collector = self._start_log(resolved.log, OperationKind.CREATE, plan)

        async with self._timed(OperationKind.CREATE, plan, {"document_count": len(inputs)}) as timing:
            tally = await self._executor.execute_writes(
                OperationKind.CREATE, writes, chunk_size, resolved.on_progress, collector
            )
            self._record_counts(timing, tally)
            result = self._assembler.assemble(
                OperationKind.CREATE, tally, collector, resolved.log, explicit_ids=explicit_ids
            )

        result.timing = timing
        self._log_outcome(OperationKind.CREATE, plan, result)
        return result

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------

    def get_timing_history(self) -> List[TimingResult]:
        """Timing results of every invocation made through this updater and its derivatives."""
        return self._timer.get_timing_history()

    def get_operation_stats(self, operation_name: str) -> Optional[OperationTimingStats]:
        """Aggregated timing statistics for one operation name (e.g. "update")."""
        return self._timer.get_operation_stats(operation_name)

    def get_performance_summary(self) -> Dict[str, OperationTimingStats]:
        return self._timer.get_summary()

    def clear_timing_history(self):
        self._timer.clear_history()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_query_mutation(
        self,
        kind: OperationKind,
        raw_data: Optional[Mapping[str, Any]],
        options: Optional[BatchOptions],
        on_progress: Optional[ProgressCallback],
        log: Optional[LogOptions],
        page_size: Optional[int]
    ) -> OperationOutcome:
        # Validation order: collection, payload, page size; all before any read
        plan = self._builder.build()
        patch = None
        if kind != OperationKind.DELETE:
            patch = BatchValidator.validate_update_data(raw_data)
        resolved = self._resolve_options(options, on_progress, log, page_size)
        effective_page_size = self._config.validate_page_size(resolved.page_size)

        collector = self._start_log(resolved.log, kind, plan, patch)

        async with self._timed(kind, plan, {"page_size": effective_page_size}) as timing:
            tally = await self._executor.execute_query_mutation(
                plan, kind, patch, effective_page_size, resolved.on_progress, collector
            )
            self._record_counts(timing, tally)
            result = self._assembler.assemble(kind, tally, collector, resolved.log)

        result.timing = timing
        self._log_outcome(kind, plan, result)
        return result

    @staticmethod
    def _resolve_options(
        options: Optional[BatchOptions],
        on_progress: Optional[ProgressCallback],
        log: Optional[LogOptions],
        page_size: Optional[int]
    ) -> BatchOptions:
        resolved = options or BatchOptions()
        overrides: Dict[str, Any] = {}
        if on_progress is not None:
            overrides["on_progress"] = on_progress
        if log is not None:
            overrides["log"] = log
        if page_size is not None:
            overrides["page_size"] = page_size
        return resolved.model_copy(update=overrides) if overrides else resolved

    @staticmethod
    def _start_log(
        log_options: Optional[LogOptions],
        kind: OperationKind,
        plan: QueryPlan,
        update_data: Optional[Dict[str, Any]] = None
    ) -> Optional[OperationLogCollector]:
        if log_options is None or not log_options.enabled:
            return None
        conditions = plan.conditions if kind != OperationKind.CREATE else ()
        return OperationLogCollector.start(kind, plan.collection, conditions, update_data)

    @asynccontextmanager
    async def _timed(self, kind: OperationKind, plan: QueryPlan, metadata: Dict[str, Any]):
        if not self._config.enable_timing:
            yield None
            return
        metadata = {"condition_count": len(plan.conditions), **metadata}
        async with self._timer.time_operation(kind.value, plan.collection, metadata) as timing:
            yield timing

    @staticmethod
    def _record_counts(timing: Optional[TimingResult], tally: ExecutionTally) -> None:
        if timing is not None:
            timing.record_counts(tally.processed, tally.failure_count, tally.pages, tally.sessions)

    @staticmethod
    def _log_outcome(kind: OperationKind, plan: QueryPlan, result: OperationOutcome) -> None:
        message = (
            f"[{kind.value}] {result.success_count}/{result.total_count} documents succeeded "
            f"in collection '{plan.collection}'"
        )
        if result.failure_count:
            logger.warning(f"{message}; {result.failure_count} failed")
        else:
            logger.info(message)
