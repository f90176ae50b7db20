"""
Store Backend Interfaces

Abstract interfaces for the two document store collaborators used by batch
operations: a query interface (count, fetch with start-after continuation)
and a bulk write channel that reports per-write completion asynchronously.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..batch_operations.models.entities import QueryPlan


@dataclass(frozen=True)
class DocumentRef:
    """Address of a document: collection path plus document id."""
    collection: str
    id: str

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"

    @classmethod
    def from_path(cls, path: str) -> "DocumentRef":
        collection, _, document_id = path.rpartition("/")
        return cls(collection=collection, id=document_id)


@dataclass
class StoredDocument:
    """
    A document returned by a fetch.

    ``data`` is the document state at fetch time. ``cursor`` is the backend's
    own handle for the document, passed back unchanged to continue a query
    after it.
    """
    ref: DocumentRef
    data: Dict[str, Any] = field(default_factory=dict)
    cursor: Any = None

    @property
    def id(self) -> str:
        return self.ref.id

    @property
    def path(self) -> str:
        return self.ref.path


@dataclass(frozen=True)
class WriteCompletion:
    """
    Completion notification for one enqueued write.

    ``ref`` may be None when the channel cannot tell which document a failure
    belongs to.
    """
    ref: Optional[DocumentRef]
    success: bool
    error: Optional[str] = None

    @property
    def document_id(self) -> Optional[str]:
        return self.ref.id if self.ref is not None else None


CompletionCallback = Callable[[WriteCompletion], None]


class WriteChannel(ABC):
    """
    One bulk write session.

    Writes are enqueued without waiting; each resolves later, in any order,
    through the registered completion callbacks. Callbacks may run on any
    thread. ``close`` resolves only after every enqueued write has resolved
    and its notification has been delivered. A channel is used for exactly
    one session and is never reused.
    """

    def __init__(self):
        self._callbacks: List[CompletionCallback] = []

    def on_completion(self, callback: CompletionCallback) -> None:
        """Register a callback invoked once per resolved write."""
        self._callbacks.append(callback)

    def _notify(self, completion: WriteCompletion) -> None:
        for callback in self._callbacks:
            callback(completion)

    async def enqueue_all(self, enqueue: Callable[[], None]) -> None:
        """
        Run ``enqueue``, which issues this session's writes through the
        enqueue methods. Runs inline on the event loop; channels whose
        enqueue calls block override it to run elsewhere.
        """
        enqueue()

    @abstractmethod
    def create(self, ref: DocumentRef, data: Dict[str, Any]) -> None:
        """Enqueue creation of a document that must not exist yet."""

    @abstractmethod
    def update(self, ref: DocumentRef, data: Dict[str, Any]) -> None:
        """Enqueue a patch of an existing document."""

    @abstractmethod
    def set(self, ref: DocumentRef, data: Dict[str, Any], merge: bool = True) -> None:
        """Enqueue a set, merged onto existing state when ``merge`` is true."""

    @abstractmethod
    def delete(self, ref: DocumentRef) -> None:
        """Enqueue removal of a document."""

    @abstractmethod
    async def close(self) -> None:
        """Flush the session and wait until every enqueued write has resolved."""


class DocumentStore(ABC):
    """
    Query and write access to a document store.

    Implementations are passed explicitly to BatchUpdater; nothing in the
    package looks up a process-wide client.
    """

    @abstractmethod
    async def count(self, plan: QueryPlan) -> int:
        """Count documents matched by ``plan`` (approximate where the store is)."""

    @abstractmethod
    async def fetch(self, plan: QueryPlan, start_after: Optional[StoredDocument] = None) -> List[StoredDocument]:
        """Return documents matched by ``plan``, continuing after ``start_after`` if given."""

    @abstractmethod
    def document_ref(self, collection: str, document_id: Optional[str] = None) -> DocumentRef:
        """Reference a document, generating an id when ``document_id`` is None."""

    @abstractmethod
    def bulk_writer(self) -> WriteChannel:
        """Open a new write session."""
