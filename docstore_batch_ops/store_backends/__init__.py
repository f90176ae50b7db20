"""
Store Backends

Document store collaborators consumed by batch operations:
- DocumentStore / WriteChannel interfaces
- InMemoryDocumentStore for tests, examples and dry runs
- FirestoreDocumentStore for Google Cloud Firestore
"""

from .base import (
    DocumentRef,
    StoredDocument,
    WriteCompletion,
    CompletionCallback,
    WriteChannel,
    DocumentStore
)
from .memory_backend import InMemoryDocumentStore, InMemoryWriteChannel, StoreStats, WriteRejected
from .firestore_backend import FirestoreDocumentStore, FirestoreWriteChannel

__all__ = [
    'DocumentRef',
    'StoredDocument',
    'WriteCompletion',
    'CompletionCallback',
    'WriteChannel',
    'DocumentStore',
    'InMemoryDocumentStore',
    'InMemoryWriteChannel',
    'StoreStats',
    'WriteRejected',
    'FirestoreDocumentStore',
    'FirestoreWriteChannel'
]
