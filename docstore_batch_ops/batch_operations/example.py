"""
Example Usage of Batch Operations

Demonstrates how to use the BatchUpdater class with custom configuration,
pagination, progress reporting, audit reports and timing statistics against
the in-memory document store.

Run with:

    python -m docstore_batch_ops.batch_operations.example
"""

import asyncio
import logging
import random
import tempfile

from docstore_batch_ops.config import load_settings
from docstore_batch_ops.store_backends import InMemoryDocumentStore
from docstore_batch_ops.batch_operations import (
    BatchUpdater,
    CreateDocumentInput,
    InvalidPayloadError,
    LogOptions,
    ProgressInfo,
    QueryExecutionError,
    TqdmProgressReporter
)

settings = load_settings()

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.logging.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

COLLECTION = "users"


def seed_store(store: InMemoryDocumentStore, count: int) -> None:
    """Populate the store with users in a mix of states."""
    statuses = ["active", "inactive", "suspended"]
    rng = random.Random(42)
    for i in range(count):
        store.add_document(COLLECTION, f"user-{i:04d}", {
            "name": f"User {i}",
            "status": rng.choice(statuses),
            "loginCount": rng.randint(0, 200),
            "profile": {"tier": "free", "region": rng.choice(["eu", "us", "apac"])}
        })


async def demonstrate_preview(updater: BatchUpdater):
    """Show what an update would change without writing."""
    logger.info("\n=== Preview ===")

    preview = await (
        updater.collection(COLLECTION)
        .where("status", "==", "inactive")
        .preview({"status": "archived"})
    )
    logger.info(f"{preview.affected_count} documents would be affected, fields: {preview.affected_fields}")
    for sample in preview.samples[:3]:
        logger.info(f"  {sample.id}: {sample.before['status']} -> {sample.after['status']}")


async def demonstrate_paginated_update(updater: BatchUpdater, log_dir: str):
    """Update a large match set page by page with a progress bar and a report."""
    logger.info("\n=== Paginated Update ===")

    result = await (
        updater.collection(COLLECTION)
        .where("status", "==", "inactive")
        .update(
            {"status": "archived", "profile.tier": "dormant"},
            page_size=100,
            on_progress=TqdmProgressReporter(desc="Archiving"),
            log=LogOptions(enabled=True, path=log_dir)
        )
    )
    logger.info(f"Updated {result.success_count}/{result.total_count} documents")
    logger.info(f"Report written to {result.log_file_path}")


async def demonstrate_partial_failure(store: InMemoryDocumentStore, updater: BatchUpdater):
    """Per-document failures are reported in the result, not raised."""
    logger.info("\n=== Partial Failure ===")

    targets = await updater.collection(COLLECTION).where("status", "==", "suspended").limit(3).get_fields("name")
    for target in targets[:2]:
        store.inject_failure(COLLECTION, target.id)

    def log_progress(progress: ProgressInfo):
        logger.debug(f"Progress: {progress.current}/{progress.total} ({progress.percentage}%)")

    result = await (
        updater.collection(COLLECTION)
        .where("status", "==", "suspended")
        .upsert({"reviewRequired": True}, on_progress=log_progress)
    )
    if result.has_failures:
        logger.warning(f"{result.failure_count} documents failed: {result.failed_doc_ids}")
    logger.info(f"Success rate: {result.success_rate:.2f}%")
    store.clear_failures()


async def demonstrate_create_and_delete(updater: BatchUpdater):
    """Create documents with explicit and generated ids, then delete them."""
    logger.info("\n=== Create and Delete ===")

    created = await updater.collection("audit").create([
        CreateDocumentInput(id="run-001", data={"kind": "archive", "source": COLLECTION}),
        {"data": {"kind": "review", "source": COLLECTION}}
    ])
    logger.info(f"Created ids: {created.created_ids}")

    deleted = await updater.collection("audit").where("source", "==", COLLECTION).delete()
    logger.info(f"Deleted ids: {deleted.deleted_ids}")


async def demonstrate_error_handling(store: InMemoryDocumentStore, updater: BatchUpdater):
    """Configuration and query errors raise before anything is written."""
    logger.info("\n=== Error Handling ===")

    try:
        await updater.collection(COLLECTION).update({})
    except InvalidPayloadError as e:
        logger.info(f"Rejected patch: {e}")

    store.inject_query_error(RuntimeError("FAILED_PRECONDITION: the query requires an index"))
    try:
        await updater.collection(COLLECTION).where("loginCount", ">", 10).delete(page_size=50)
    except QueryExecutionError as e:
        logger.info(f"Query failed during {e.phase}; collection untouched: {e}")


async def main():
    store = InMemoryDocumentStore(max_in_flight=25, write_latency=0.001, seed=7)
    seed_store(store, 500)

    updater = BatchUpdater(store, config=settings.to_operation_config())

    with tempfile.TemporaryDirectory() as log_dir:
        await demonstrate_preview(updater)
        await demonstrate_paginated_update(updater, log_dir)
        await demonstrate_partial_failure(store, updater)
        await demonstrate_create_and_delete(updater)
        await demonstrate_error_handling(store, updater)

    logger.info("\n=== Performance Summary ===")
    for name, stats in updater.get_performance_summary().items():
        logger.info(
            f"{name}: {stats.total_operations} runs, "
            f"{stats.total_documents} documents, "
            f"avg {stats.average_execution_time * 1000:.2f}ms, "
            f"{stats.documents_per_second:.0f} docs/s, "
            f"success rate {stats.success_rate:.0f}%"
        )


if __name__ == "__main__":
    asyncio.run(main())
