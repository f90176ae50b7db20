"""
Batch Operations Module

Filtered bulk mutations against a document store:
- Fluent query building (collection, where, order_by, limit)
- Update, upsert and delete over every matched document
- Bulk create with explicit or store-generated ids
- Dry-run previews and bulk field reads
- Optional pagination with a start-after cursor for large match sets
- Per-document outcome accounting; partial failure never raises
- Progress callbacks driven by write completions
- Plain text audit reports per invocation
- Performance timing and statistics

Typical usage from external projects:

    from docstore_batch_ops.batch_operations import (
        BatchUpdater,
        BatchOperationConfig,
        LogOptions,
        QueryExecutionError,
        TqdmProgressReporter
    )

    config = BatchOperationConfig(default_page_size=500, strict_log_persistence=True)
    updater = BatchUpdater(store, config=config)

    try:
        result = await (
            updater.collection("orders")
            .where("status", "==", "pending")
            .where("createdAt", "<", cutoff)
            .update(
                {"status": "expired"},
                on_progress=TqdmProgressReporter(desc="Expiring orders"),
                log=LogOptions(enabled=True, path="./logs")
            )
        )
        print(f"Expired {result.success_count}/{result.total_count} orders")
        for doc_id in result.failed_doc_ids or []:
            print(f"Failed document: {doc_id}")
    except QueryExecutionError as e:
        print(f"Query rejected by the store, nothing was written: {e}")
"""

# Core updater (primary interface)
from .core.manager import BatchUpdater

# Configuration
from .batch_ops_config import BatchOperationConfig

# Data models
from .models.entities import (
    SUPPORTED_OPERATORS,
    OperationKind,
    LogStatus,
    SortDirection,
    FilterCondition,
    OrderSpec,
    QueryPlan,
    ProgressInfo,
    ProgressCallback,
    LogOptions,
    BatchOptions,
    CreateDocumentInput,
    OperationOutcome,
    UpdateResult,
    UpsertResult,
    CreateResult,
    DeleteResult,
    DocumentPreview,
    PreviewResult,
    FieldValue,
    LogEntry,
    LogSummary,
    OperationLog
)

# Building blocks
from .core.validator import BatchValidator
from .core.query_plan import QueryPlanBuilder
from .core.executor import PaginatedBatchExecutor, ExecutionTally
from .core.assembler import ResultAssembler

# Utilities
from .utils.progress import calculate_progress, TqdmProgressReporter
from .utils.operation_log import (
    OperationLogCollector,
    OperationLogWriter,
    format_operation_log,
    generate_log_filename
)
from .utils.timing import PerformanceTimer, TimingResult, OperationTimingStats

# Exceptions
from .batch_ops_exceptions import (
    BatchOperationError,
    CollectionNotSelectedError,
    InvalidPayloadError,
    InvalidPageSizeError,
    InvalidQueryError,
    QueryExecutionError,
    TransientQueryError,
    LogPersistenceError
)

__all__ = [
    # Primary interface
    'BatchUpdater',
    'BatchOperationConfig',
    # Models
    'SUPPORTED_OPERATORS',
    'OperationKind',
    'LogStatus',
    'SortDirection',
    'FilterCondition',
    'OrderSpec',
    'QueryPlan',
    'ProgressInfo',
    'ProgressCallback',
    'LogOptions',
    'BatchOptions',
    'CreateDocumentInput',
    'OperationOutcome',
    'UpdateResult',
    'UpsertResult',
    'CreateResult',
    'DeleteResult',
    'DocumentPreview',
    'PreviewResult',
    'FieldValue',
    'LogEntry',
    'LogSummary',
    'OperationLog',
    # Building blocks
    'BatchValidator',
    'QueryPlanBuilder',
    'PaginatedBatchExecutor',
    'ExecutionTally',
    'ResultAssembler',
    # Utilities
    'calculate_progress',
    'TqdmProgressReporter',
    'OperationLogCollector',
    'OperationLogWriter',
    'format_operation_log',
    'generate_log_filename',
    'PerformanceTimer',
    'TimingResult',
    'OperationTimingStats',
    # Exceptions
    'BatchOperationError',
    'CollectionNotSelectedError',
    'InvalidPayloadError',
    'InvalidPageSizeError',
    'InvalidQueryError',
    'QueryExecutionError',
    'TransientQueryError',
    'LogPersistenceError'
]
