"""
Firestore Store Backend

Google Cloud Firestore implementation of the store interfaces, built on the
synchronous ``google-cloud-firestore`` client. Queries, BulkWriter enqueues and
flushes block, so they run on a thread pool and are awaited from the event loop.
BulkWriter callbacks fire on its worker threads; WriteChannel consumers must
accept notifications from any thread.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from ..batch_operations.models.entities import QueryPlan, SortDirection
from ..batch_operations.batch_ops_exceptions import TransientQueryError
from ..config.settings import FirestoreSettings
from ..docstore_ops_exceptions import StoreConnectionError
from .base import DocumentRef, DocumentStore, StoredDocument, WriteChannel, WriteCompletion

logger = logging.getLogger(__name__)

# Read failures worth retrying
_TRANSIENT_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.ResourceExhausted,
    gcp_exceptions.Aborted,
)


def _to_document_ref(reference: Any) -> DocumentRef:
    return DocumentRef.from_path(reference.path)


class FirestoreWriteChannel(WriteChannel):
    """
    One Firestore BulkWriter session.

    Failed writes are reported once and never retried by the BulkWriter:
    the error handler always returns False.
    """

    def __init__(self, client: firestore.Client, executor: ThreadPoolExecutor):
        super().__init__()
        self._client = client
        self._executor = executor
        self._writer = client.bulk_writer()
        self._writer.on_write_result(self._handle_result)
        self._writer.on_write_error(self._handle_error)

    def _handle_result(self, reference: Any, result: Any, bulk_writer: Any) -> None:
        self._notify(WriteCompletion(ref=_to_document_ref(reference), success=True))

    def _handle_error(self, error: Any, bulk_writer: Any) -> bool:
        reference = getattr(error.operation, "reference", None)
        ref = _to_document_ref(reference) if reference is not None else None
        self._notify(WriteCompletion(ref=ref, success=False, error=error.message))
        return False

    def _native(self, ref: DocumentRef):
        return self._client.document(ref.path)

    def create(self, ref: DocumentRef, data: Dict[str, Any]) -> None:
        self._writer.create(self._native(ref), data)

    def update(self, ref: DocumentRef, data: Dict[str, Any]) -> None:
        self._writer.update(self._native(ref), data)

    def set(self, ref: DocumentRef, data: Dict[str, Any], merge: bool = True) -> None:
        self._writer.set(self._native(ref), data, merge=merge)

    def delete(self, ref: DocumentRef) -> None:
        self._writer.delete(self._native(ref))

    async def enqueue_all(self, enqueue: Callable[[], None]) -> None:
        # BulkWriter throttles enqueues with time.sleep once its rate limiter runs dry
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, enqueue)

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._writer.close)


class FirestoreDocumentStore(DocumentStore):
    """
    Firestore-backed document store.

    Args:
        client: Initialized ``google.cloud.firestore.Client``
        executor: Thread pool for blocking calls; one is created when omitted

    Example:
        ```python
        from google.cloud import firestore

        store = FirestoreDocumentStore(firestore.Client(project="my-project"))
        updater = BatchUpdater(store)
        ```
    """

    def __init__(self, client: firestore.Client, executor: Optional[ThreadPoolExecutor] = None):
        self._client = client
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="firestore-batch")

    @classmethod
    def from_settings(cls, settings: FirestoreSettings) -> "FirestoreDocumentStore":
        """
        Create a client from settings.

        Raises:
            StoreConnectionError: If credentials cannot be loaded or the client cannot be created
        """
        try:
            credentials = None
            if settings.credentials_path:
                credentials = service_account.Credentials.from_service_account_file(settings.credentials_path)

            kwargs: Dict[str, Any] = {}
            if settings.project:
                kwargs["project"] = settings.project
            if settings.database:
                kwargs["database"] = settings.database
            if credentials is not None:
                kwargs["credentials"] = credentials

            client = firestore.Client(**kwargs)
        except Exception as e:
            logger.error(f"Failed to create Firestore client: {e}")
            raise StoreConnectionError(f"Firestore client creation failed: {e}") from e

        logger.info(f"Firestore client created for project '{client.project}'")
        executor = ThreadPoolExecutor(
            max_workers=settings.executor_workers,
            thread_name_prefix="firestore-batch"
        )
        store = cls(client, executor=executor)
        store._owns_executor = True
        return store

    def _build_query(self, plan: QueryPlan, start_after: Optional[StoredDocument] = None):
        query = self._client.collection(plan.collection)

        for condition in plan.conditions:
            query = query.where(filter=FieldFilter(condition.field, condition.operator, condition.value))

        if plan.order is not None:
            direction = (
                firestore.Query.DESCENDING
                if plan.order.direction == SortDirection.DESCENDING
                else firestore.Query.ASCENDING
            )
            query = query.order_by(plan.order.field, direction=direction)

        if plan.limit is not None:
            query = query.limit(plan.limit)

        if start_after is not None:
            query = query.start_after(start_after.cursor)

        return query

    async def _run(self, func, description: str):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, func)
        except _TRANSIENT_ERRORS as e:
            raise TransientQueryError(f"Transient Firestore error during {description}: {e}") from e

    async def count(self, plan: QueryPlan) -> int:
        query = self._build_query(plan)

        def _count() -> int:
            results = query.count(alias="total").get()
            return int(results[0][0].value)

        return await self._run(_count, f"count on '{plan.collection}'")

    async def fetch(self, plan: QueryPlan, start_after: Optional[StoredDocument] = None) -> List[StoredDocument]:
        query = self._build_query(plan, start_after)

        def _fetch() -> List[StoredDocument]:
            return [
                StoredDocument(
                    ref=DocumentRef(plan.collection, snapshot.id),
                    data=snapshot.to_dict() or {},
                    cursor=snapshot
                )
                for snapshot in query.stream()
            ]

        return await self._run(_fetch, f"fetch on '{plan.collection}'")

    def document_ref(self, collection: str, document_id: Optional[str] = None) -> DocumentRef:
        if document_id is None:
            # Firestore generates auto ids client side
            document_id = self._client.collection(collection).document().id
        return DocumentRef(collection, document_id)

    def bulk_writer(self) -> FirestoreWriteChannel:
        return FirestoreWriteChannel(self._client, self._executor)

    def close(self) -> None:
        """Release the thread pool and the client."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        self._client.close()
