"""
Batch Operation Entities

Defines Pydantic models for query plans, call options, progress snapshots,
operation results and audit log records used by batch operations.

Typical usage from external projects:

    from docstore_batch_ops.batch_operations import UpdateResult, ProgressInfo

    result = await updater.collection("users").where("status", "==", "inactive").update(
        {"status": "archived"},
        on_progress=lambda p: print(f"{p.percentage}%")
    )
    print(f"Updated {result.success_count}/{result.total_count} documents")
    print(f"Success rate: {result.success_rate:.2f}%")
"""

from typing import Dict, List, Any, Optional, Callable, Tuple
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.timing import TimingResult

# Comparison operators understood by every store backend
SUPPORTED_OPERATORS = (
    "==", "!=", "<", "<=", ">", ">=",
    "in", "not-in", "array-contains", "array-contains-any",
)


class OperationKind(str, Enum):
    """Kind of mutation applied to each matched or supplied document."""
    CREATE = "create"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"


class LogStatus(str, Enum):
    """Outcome recorded for a single document in the operation log."""
    SUCCESS = "success"
    FAILURE = "failure"


class SortDirection(str, Enum):
    """Ordering direction for a query plan."""
    ASCENDING = "asc"
    DESCENDING = "desc"


class FilterCondition(BaseModel):
    """
    A single predicate of a query plan.

    All conditions of a plan are combined as a conjunction. Their order can
    matter for index selection in the store but never for the matched set.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    field: str = Field(..., min_length=1, description="Field path, dotted for nested fields")
    operator: str = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Value the field is compared against")

    @field_validator('operator')
    @classmethod
    def validate_operator(cls, v: str) -> str:
        if v not in SUPPORTED_OPERATORS:
            raise ValueError(
                f"Unsupported operator '{v}'. Expected one of: {', '.join(SUPPORTED_OPERATORS)}"
            )
        return v


class OrderSpec(BaseModel):
    """Single-field ordering, applied before any limit."""
    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)
    direction: SortDirection = SortDirection.ASCENDING


class QueryPlan(BaseModel):
    """
    Immutable description of which documents an operation targets.

    A plan is built fresh for every invocation and never retained by the
    executor. Pagination derives page queries from it with ``with_limit``
    and a start-after cursor, so filters and ordering compose unchanged.
    """
    model_config = ConfigDict(frozen=True)

    collection: str = Field(..., min_length=1)
    conditions: Tuple[FilterCondition, ...] = ()
    order: Optional[OrderSpec] = None
    limit: Optional[int] = Field(None, gt=0)

    def with_limit(self, limit: int) -> "QueryPlan":
        """Return a copy of this plan limited to ``limit`` results."""
        return self.model_copy(update={"limit": limit})


class ProgressInfo(BaseModel):
    """Progress snapshot passed to progress callbacks."""
    current: int = Field(..., ge=0, description="Documents processed so far, failures included")
    total: int = Field(..., ge=0, description="Planned total for the invocation")
    percentage: int = Field(..., ge=0, description="round(current / total * 100), 0 when total is 0")


ProgressCallback = Callable[[ProgressInfo], Any]


class LogOptions(BaseModel):
    """
    Report generation options.

    Attributes:
        enabled: Whether a report is written for the invocation
        path: Directory for the report (default: the configured log path, ./logs)
        filename: Report filename (default: <operation>-<timestamp>.log)
    """
    enabled: bool = False
    path: Optional[str] = None
    filename: Optional[str] = None


class BatchOptions(BaseModel):
    """
    Per-call options for batch operations.

    ``page_size`` left unset means one query and one write session covering
    everything matched. It is validated by the configuration, not here, so
    that invalid values surface as InvalidPageSizeError.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    on_progress: Optional[ProgressCallback] = None
    log: Optional[LogOptions] = None
    page_size: Optional[Any] = None


class CreateDocumentInput(BaseModel):
    """A document to create. ``id`` is generated by the store when omitted."""
    id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class OperationOutcome(BaseModel):
    """
    Result shared by every mutating batch operation.

    ``success_count + failure_count == total_count`` holds for every returned
    outcome. Partial failure is reported here rather than raised, so callers
    must check ``failure_count`` or ``failed_doc_ids``.
    """
    success_count: int = 0
    failure_count: int = 0
    total_count: int = 0
    failed_doc_ids: Optional[List[str]] = Field(
        None,
        description="IDs of documents whose write failed; None when nothing failed"
    )
    log_file_path: Optional[str] = Field(None, description="Report location when logging was enabled")
    timing: Optional[TimingResult] = Field(None, description="Performance timing result for the operation.")

    @property
    def has_failures(self) -> bool:
        return self.failure_count > 0

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage."""
        if self.total_count == 0:
            return 0.0
        return (self.success_count / self.total_count) * 100


class UpdateResult(OperationOutcome):
    """Result of a batch update."""
    pass


class UpsertResult(OperationOutcome):
    """Result of a batch upsert (set with merge)."""
    pass


class CreateResult(OperationOutcome):
    """
    Result of a batch create.

    ``created_ids`` lists explicitly supplied ids in input order, followed by
    store-generated ids in write completion order.
    """
    created_ids: List[str] = Field(default_factory=list)


class DeleteResult(OperationOutcome):
    """Result of a batch delete."""
    deleted_ids: List[str] = Field(default_factory=list)


class DocumentPreview(BaseModel):
    """Before/after view of one document under a proposed patch."""
    id: str
    before: Dict[str, Any]
    after: Dict[str, Any]


class PreviewResult(BaseModel):
    """Dry-run summary of an update; computed locally, never written."""
    affected_count: int
    affected_fields: List[str]
    samples: List[DocumentPreview] = Field(default_factory=list)


class FieldValue(BaseModel):
    """A single field value read from a matched document."""
    id: str
    value: Any = None


class LogEntry(BaseModel):
    """Outcome record for one document, appended in completion order."""
    model_config = ConfigDict(frozen=True)

    timestamp: str
    document_id: str
    status: LogStatus
    error: Optional[str] = None


class LogSummary(BaseModel):
    total_count: int = 0
    success_count: int = 0
    failure_count: int = 0


class OperationLog(BaseModel):
    """Complete audit record of one invocation, immutable once finalized."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    operation: OperationKind
    collection: str
    started_at: str
    completed_at: str
    conditions: List[FilterCondition] = Field(default_factory=list)
    update_data: Optional[Dict[str, Any]] = None
    summary: LogSummary
    entries: List[LogEntry] = Field(default_factory=list)
