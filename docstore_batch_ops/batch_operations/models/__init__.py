"""
Data Models

Contains Pydantic models for query plans, options, results and audit logs.
"""

from .entities import (
    SUPPORTED_OPERATORS,
    OperationKind,
    LogStatus,
    SortDirection,
    FilterCondition,
    OrderSpec,
    QueryPlan,
    ProgressInfo,
    ProgressCallback,
    LogOptions,
    BatchOptions,
    CreateDocumentInput,
    OperationOutcome,
    UpdateResult,
    UpsertResult,
    CreateResult,
    DeleteResult,
    DocumentPreview,
    PreviewResult,
    FieldValue,
    LogEntry,
    LogSummary,
    OperationLog
)

__all__ = [
    'SUPPORTED_OPERATORS',
    'OperationKind',
    'LogStatus',
    'SortDirection',
    'FilterCondition',
    'OrderSpec',
    'QueryPlan',
    'ProgressInfo',
    'ProgressCallback',
    'LogOptions',
    'BatchOptions',
    'CreateDocumentInput',
    'OperationOutcome',
    'UpdateResult',
    'UpsertResult',
    'CreateResult',
    'DeleteResult',
    'DocumentPreview',
    'PreviewResult',
    'FieldValue',
    'LogEntry',
    'LogSummary',
    'OperationLog'
]
