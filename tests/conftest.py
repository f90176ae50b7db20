"""Shared fixtures for the batch operations test suite."""

import pytest

from docstore_batch_ops.batch_operations import BatchOperationConfig, BatchUpdater
from docstore_batch_ops.store_backends import InMemoryDocumentStore


@pytest.fixture
def store():
    """An empty in-memory store whose writes complete out of enqueue order."""
    return InMemoryDocumentStore(max_in_flight=8, write_latency=0.002, seed=1234)


@pytest.fixture
def config(tmp_path):
    return BatchOperationConfig(
        read_retry_delay=0.0,
        default_log_path=str(tmp_path / "logs")
    )


@pytest.fixture
def updater(store, config):
    return BatchUpdater(store, config=config)


@pytest.fixture
def seed_users(store):
    """Populate ``users`` with ``count`` documents; every third one is active."""

    def _seed(count: int, collection: str = "users"):
        for i in range(count):
            store.add_document(collection, f"user-{i:04d}", {
                "name": f"User {i}",
                "status": "active" if i % 3 == 0 else "inactive",
                "rank": i,
                "profile": {"tier": "free", "region": "eu"}
            })
        return store

    return _seed
