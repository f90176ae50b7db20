"""
DocStore Batch Ops Exceptions

This module defines the root exceptions for the docstore_batch_ops package
to provide clear error handling and reporting.
"""


class DocstoreOpsError(Exception):
    """Base exception for all docstore_batch_ops errors"""
    pass


class ConfigurationError(DocstoreOpsError):
    """Raised when configuration or call arguments are invalid or missing"""
    pass


class QueryError(DocstoreOpsError):
    """Raised when a read against the document store fails"""
    pass


class StoreConnectionError(DocstoreOpsError):
    """Raised when the document store client cannot be created or reached"""
    pass
