"""
Batch Operations Exceptions

Granular exception hierarchy for batch mutation operations. Exceptions are
reserved for catastrophic conditions (bad configuration, failed reads,
unrecoverable report persistence); per-document write failures are never
raised and are reported through the returned result instead.
"""

from typing import Any, Optional

from ..docstore_ops_exceptions import DocstoreOpsError, ConfigurationError, QueryError


class BatchOperationError(DocstoreOpsError):
    """
    Base exception for all batch operation errors.

    Allows external projects to catch every batch operation error with a
    single except clause if desired.
    """
    pass


class CollectionNotSelectedError(BatchOperationError, ConfigurationError):
    """Raised when an operation runs before a collection has been selected."""
    pass


class InvalidPayloadError(BatchOperationError, ConfigurationError):
    """
    Raised when mutation data is unusable.

    Covers an empty or non-mapping patch for update/upsert/preview, an empty
    document list for create, create inputs without data, and explicit
    document ids repeated within one create call.

    Example:
        ```python
        try:
            await updater.collection("users").update({})
        except InvalidPayloadError as e:
            logger.error(f"Rejected patch: {e}")
        ```
    """
    pass


class InvalidPageSizeError(BatchOperationError, ConfigurationError):
    """Raised when a page size is zero, negative or above the configured maximum."""

    def __init__(self, message: str, page_size: Any = None):
        super().__init__(message)
        self.page_size = page_size


class InvalidQueryError(BatchOperationError, ConfigurationError):
    """Raised when a collection path, condition, ordering or limit is malformed."""
    pass


class QueryExecutionError(BatchOperationError, QueryError):
    """
    Raised when the count or fetch query is rejected by the store.

    No mutation has been dispatched when this is raised, so the target
    collection is untouched. The store's original exception is chained as
    ``__cause__``.

    Attributes:
        collection: Collection the query ran against
        phase: Which read failed ("count" or "fetch")
    """

    def __init__(self, message: str, collection: Optional[str] = None, phase: Optional[str] = None):
        super().__init__(message)
        self.collection = collection
        self.phase = phase


class TransientQueryError(BatchOperationError, QueryError):
    """
    Raised for read failures that may succeed if retried.

    Backends raise this for conditions such as a temporarily unavailable
    service. Reads that fail this way are retried when
    ``retry_transient_reads`` is enabled in the configuration.
    """
    pass


class LogPersistenceError(BatchOperationError):
    """
    Raised when the operation report could not be written.

    Only raised when ``strict_log_persistence`` is enabled. The mutations have
    already been applied at that point, so the assembled result is attached.

    Attributes:
        outcome: The result of the invocation, without ``log_file_path``

    Example:
        ```python
        try:
            result = await updater.update(patch, log=LogOptions(enabled=True))
        except LogPersistenceError as e:
            result = e.outcome
            logger.error(f"Report lost, {result.success_count} documents updated")
        ```
    """

    def __init__(self, message: str, outcome: Any = None):
        super().__init__(message)
        self.outcome = outcome
