"""
DocStore Batch Ops - Batch Mutation Toolkit for Document Stores

A toolkit for running filtered create/update/upsert/delete operations against
a document store through a rate-limited bulk-write channel. Large match sets
are processed page by page with bounded memory, every document outcome is
accounted for, progress is reported as writes complete, and an optional audit
report is written for each invocation.
"""

__version__ = "0.1.0"
__author__ = "DocStore Batch Ops Contributors"

from .batch_operations import (
    BatchUpdater,
    BatchOperationConfig,
    BatchOptions,
    LogOptions,
    ProgressInfo,
)
from .store_backends import DocumentStore, InMemoryDocumentStore

__all__ = [
    'BatchUpdater',
    'BatchOperationConfig',
    'BatchOptions',
    'LogOptions',
    'ProgressInfo',
    'DocumentStore',
    'InMemoryDocumentStore',
]
