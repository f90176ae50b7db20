"""
In-Memory Document Store Backend

A complete, process-local implementation of the store interfaces. It backs
the test suite and the examples, and is useful for dry runs of batch jobs
against a snapshot of real data.

The write channel dispatches every enqueued write as its own asyncio task,
bounded by a semaphore, so completions arrive out of enqueue order the same
way they do from a real bulk writer. Failures can be injected per document.
"""

import asyncio
import copy
import logging
import random
import string
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..batch_operations.models.entities import QueryPlan, SortDirection
from ..batch_operations.batch_ops_exceptions import QueryExecutionError
from ..batch_operations.utils.field_paths import MISSING, get_field, set_field_path
from .base import DocumentRef, DocumentStore, StoredDocument, WriteChannel, WriteCompletion

logger = logging.getLogger(__name__)

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
_AUTO_ID_LENGTH = 20

_WRITE_CREATE = "create"
_WRITE_UPDATE = "update"
_WRITE_SET = "set"
_WRITE_MERGE = "merge"
_WRITE_DELETE = "delete"


class WriteRejected(Exception):
    """A single write refused by the in-memory store."""
    pass


@dataclass
class StoreStats:
    """Counters describing how the store has been used."""
    count_queries: int = 0
    fetch_queries: int = 0
    sessions_opened: int = 0
    open_sessions: int = 0
    max_concurrent_sessions: int = 0
    writes_applied: int = 0
    writes_rejected: int = 0


def _type_rank(value: Any) -> int:
    # Cross-type ordering: null < bool < number < timestamp < string < other
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, (datetime, date)):
        return 3
    if isinstance(value, str):
        return 4
    return 5


def _as_timestamp(value: Any) -> Any:
    # Stored timestamps are UTC instants; plain dates and naive datetimes are read as UTC
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


def _ordering_value(value: Any) -> Tuple[int, Any]:
    rank = _type_rank(value)
    if rank == 5:
        return rank, repr(value)
    if rank == 0:
        return rank, 0
    if rank == 3:
        return rank, _as_timestamp(value)
    return rank, value


def _compare(left: Any, op: str, right: Any) -> bool:
    left, right = _as_timestamp(left), _as_timestamp(right)
    try:
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        return left >= right
    except TypeError:
        return False


def matches_condition(data: Dict[str, Any], field_path: str, operator: str, value: Any) -> bool:
    """Evaluate one filter condition against a document's data."""
    actual = get_field(data, field_path)

    if operator == "==":
        return actual is not MISSING and actual == value
    if operator == "!=":
        return actual is not MISSING and actual is not None and actual != value
    if operator in ("<", "<=", ">", ">="):
        if actual is MISSING or actual is None:
            return False
        return _type_rank(actual) == _type_rank(value) and _compare(actual, operator, value)
    if operator == "in":
        return actual is not MISSING and actual in value
    if operator == "not-in":
        return actual is not MISSING and actual is not None and actual not in value
    if operator == "array-contains":
        return isinstance(actual, list) and value in actual
    if operator == "array-contains-any":
        return isinstance(actual, list) and any(v in actual for v in value)

    raise ValueError(f"Unsupported operator '{operator}'")


def _deep_merge(target: Dict[str, Any], patch: Dict[str, Any]) -> None:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class InMemoryWriteChannel(WriteChannel):
    """
    Write session against an InMemoryDocumentStore.

    Args:
        store: Store the writes are applied to
        max_in_flight: Maximum writes dispatched concurrently
        write_latency: Upper bound in seconds of the simulated per-write delay
        rng: Random source for the simulated delay
    """

    def __init__(
        self,
        store: "InMemoryDocumentStore",
        max_in_flight: int,
        write_latency: float,
        rng: random.Random
    ):
        super().__init__()
        self._store = store
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._write_latency = write_latency
        self._rng = rng
        self._tasks: List[asyncio.Task] = []
        self._closed = False

    def create(self, ref: DocumentRef, data: Dict[str, Any]) -> None:
        self._enqueue(_WRITE_CREATE, ref, data)

    def update(self, ref: DocumentRef, data: Dict[str, Any]) -> None:
        self._enqueue(_WRITE_UPDATE, ref, data)

    def set(self, ref: DocumentRef, data: Dict[str, Any], merge: bool = True) -> None:
        self._enqueue(_WRITE_MERGE if merge else _WRITE_SET, ref, data)

    def delete(self, ref: DocumentRef) -> None:
        self._enqueue(_WRITE_DELETE, ref, None)

    def _enqueue(self, kind: str, ref: DocumentRef, data: Optional[Dict[str, Any]]) -> None:
        if self._closed:
            raise RuntimeError("Write channel is closed")

        payload = copy.deepcopy(data) if data is not None else None
        task = asyncio.get_running_loop().create_task(self._dispatch(kind, ref, payload))
        self._tasks.append(task)

    async def _dispatch(self, kind: str, ref: DocumentRef, data: Optional[Dict[str, Any]]) -> None:
        async with self._semaphore:
            delay = self._rng.random() * self._write_latency if self._write_latency else 0
            await asyncio.sleep(delay)
            try:
                self._store._apply_write(kind, ref, data)
                completion = WriteCompletion(ref=ref, success=True)
            except WriteRejected as e:
                completion = WriteCompletion(ref=ref, success=False, error=str(e))
        self._notify(completion)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._tasks:
                await asyncio.gather(*self._tasks)
        finally:
            self._store._session_closed()


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local document store.

    Args:
        max_in_flight: Maximum concurrent writes per write session
        write_latency: Upper bound in seconds of the random per-write delay;
                       any positive value makes completion order differ from enqueue order
        seed: Seed for the delay and auto-id generators

    Example:
        ```python
        store = InMemoryDocumentStore()
        store.add_documents("users", {
            "u1": {"status": "inactive"},
            "u2": {"status": "active"},
        })
        store.inject_failure("users", "u1", "PERMISSION_DENIED: locked")
        ```
    """

    def __init__(self, max_in_flight: int = 50, write_latency: float = 0.0, seed: Optional[int] = None):
        if max_in_flight <= 0:
            raise ValueError("max_in_flight must be positive")
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._failures: Dict[str, str] = {}
        self._query_errors: List[Exception] = []
        self._max_in_flight = max_in_flight
        self._write_latency = write_latency
        self._rng = random.Random(seed)
        self.stats = StoreStats()

    # ------------------------------------------------------------------
    # Data management helpers
    # ------------------------------------------------------------------

    def add_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> DocumentRef:
        self._collections.setdefault(collection, {})[document_id] = copy.deepcopy(data)
        return DocumentRef(collection, document_id)

    def add_documents(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        for document_id, data in documents.items():
            self.add_document(collection, document_id, data)

    def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        data = self._collections.get(collection, {}).get(document_id)
        return copy.deepcopy(data) if data is not None else None

    def documents(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._collections.get(collection, {}))

    def inject_failure(self, collection: str, document_id: str, message: str = "ABORTED: simulated write failure") -> None:
        """Make every write to the given document fail with ``message``."""
        self._failures[DocumentRef(collection, document_id).path] = message

    def clear_failures(self) -> None:
        self._failures.clear()

    def inject_query_error(self, error: Exception) -> None:
        """Make the next count or fetch raise ``error``."""
        self._query_errors.append(error)

    # ------------------------------------------------------------------
    # DocumentStore interface
    # ------------------------------------------------------------------

    async def count(self, plan: QueryPlan) -> int:
        self.stats.count_queries += 1
        await asyncio.sleep(0)
        self._raise_injected_query_error()
        return len(self._run_query(plan))

    async def fetch(self, plan: QueryPlan, start_after: Optional[StoredDocument] = None) -> List[StoredDocument]:
        self.stats.fetch_queries += 1
        await asyncio.sleep(0)
        self._raise_injected_query_error()
        results = self._run_query(plan, start_after)
        return [
            StoredDocument(ref=DocumentRef(plan.collection, doc_id), data=copy.deepcopy(data), cursor=None)
            for doc_id, data in results
        ]

    def document_ref(self, collection: str, document_id: Optional[str] = None) -> DocumentRef:
        if document_id is None:
            document_id = "".join(self._rng.choice(_AUTO_ID_ALPHABET) for _ in range(_AUTO_ID_LENGTH))
        return DocumentRef(collection, document_id)

    def bulk_writer(self) -> InMemoryWriteChannel:
        self.stats.sessions_opened += 1
        self.stats.open_sessions += 1
        self.stats.max_concurrent_sessions = max(self.stats.max_concurrent_sessions, self.stats.open_sessions)
        return InMemoryWriteChannel(self, self._max_in_flight, self._write_latency, self._rng)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _raise_injected_query_error(self) -> None:
        if self._query_errors:
            raise self._query_errors.pop(0)

    def _sort_key(self, plan: QueryPlan, doc_id: str, data: Dict[str, Any]) -> Tuple:
        if plan.order is None:
            return (doc_id,)
        return (_ordering_value(get_field(data, plan.order.field)), doc_id)

    def _run_query(
        self,
        plan: QueryPlan,
        start_after: Optional[StoredDocument] = None
    ) -> List[Tuple[str, Dict[str, Any]]]:
        documents = self._collections.get(plan.collection, {})

        try:
            matched = [
                (doc_id, data)
                for doc_id, data in documents.items()
                if all(matches_condition(data, c.field, c.operator, c.value) for c in plan.conditions)
            ]
        except (TypeError, ValueError) as e:
            raise QueryExecutionError(
                f"Invalid query on '{plan.collection}': {e}", collection=plan.collection, phase="query"
            ) from e

        # Ordering excludes documents without the ordered field
        if plan.order is not None:
            matched = [(d, data) for d, data in matched if get_field(data, plan.order.field) is not MISSING]

        descending = plan.order is not None and plan.order.direction == SortDirection.DESCENDING
        matched.sort(key=lambda item: self._sort_key(plan, item[0], item[1]), reverse=descending)

        if start_after is not None:
            # Positional continuation from the cursor document's snapshot values
            cursor_key = self._sort_key(plan, start_after.id, start_after.data)
            if descending:
                matched = [item for item in matched if self._sort_key(plan, *item) < cursor_key]
            else:
                matched = [item for item in matched if self._sort_key(plan, *item) > cursor_key]

        if plan.limit is not None:
            matched = matched[:plan.limit]

        return matched

    def _apply_write(self, kind: str, ref: DocumentRef, data: Optional[Dict[str, Any]]) -> None:
        failure = self._failures.get(ref.path)
        if failure is not None:
            self.stats.writes_rejected += 1
            raise WriteRejected(failure)

        collection = self._collections.setdefault(ref.collection, {})
        existing = collection.get(ref.id)

        if kind == _WRITE_CREATE:
            if existing is not None:
                self.stats.writes_rejected += 1
                raise WriteRejected(f"ALREADY_EXISTS: Document already exists: {ref.path}")
            collection[ref.id] = data or {}
        elif kind == _WRITE_UPDATE:
            if existing is None:
                self.stats.writes_rejected += 1
                raise WriteRejected(f"NOT_FOUND: No document to update: {ref.path}")
            for field_path, value in (data or {}).items():
                set_field_path(existing, field_path, value)
        elif kind == _WRITE_MERGE:
            target = existing if existing is not None else {}
            _deep_merge(target, data or {})
            collection[ref.id] = target
        elif kind == _WRITE_SET:
            collection[ref.id] = data or {}
        elif kind == _WRITE_DELETE:
            collection.pop(ref.id, None)
        else:
            raise ValueError(f"Unknown write kind '{kind}'")

        self.stats.writes_applied += 1

    def _session_closed(self) -> None:
        self.stats.open_sessions -= 1
