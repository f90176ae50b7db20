"""
Core Batch Operation Components

Contains the query builder, executor, result assembler and the BatchUpdater
facade that ties them together.
"""

from .manager import BatchUpdater
from .validator import BatchValidator
from .query_plan import QueryPlanBuilder, PageRequest
from .executor import PaginatedBatchExecutor, ExecutionTally
from .assembler import ResultAssembler

__all__ = [
    'BatchUpdater',
    'BatchValidator',
    'QueryPlanBuilder',
    'PageRequest',
    'PaginatedBatchExecutor',
    'ExecutionTally',
    'ResultAssembler'
]
