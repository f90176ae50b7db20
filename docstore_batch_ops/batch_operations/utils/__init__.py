"""
Utility modules for batch operations.
"""

from .timing import TimingResult, OperationTimingStats, PerformanceTimer

__all__ = [
    'TimingResult',
    'OperationTimingStats',
    'PerformanceTimer'
]
