"""
Batch Operations Configuration

Centralized configuration for batch mutation operations, providing a single
source of truth for pagination, read retries, preview sampling, timing and
report persistence.

This configuration can be customized by external projects to match their
specific requirements and deployment environments.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional
import logging

from .batch_ops_exceptions import InvalidPageSizeError

logger = logging.getLogger(__name__)


@dataclass
class BatchOperationConfig:
    """
    Configuration for batch mutation operations.

    Attributes:
        default_page_size: Page size used when a call does not pass one.
                           None means unbounded mode (one query, one write session).
        max_page_size: Largest page size accepted.
        preview_sample_size: Number of before/after samples returned by preview.
        retry_transient_reads: Whether count/fetch queries are retried on transient errors.
                               Writes are never retried.
        max_read_retries: Maximum number of attempts for a transient read failure.
        read_retry_delay: Base delay in seconds between read attempts.
                          Actual delay increases linearly with attempt number.
        enable_timing: Whether to record a timing result for each invocation.
        timing_history_size: Number of most recent timing results kept for statistics.
        strict_log_persistence: Raise LogPersistenceError when the report cannot be
                                written instead of returning without a log path.
        default_log_path: Directory used for reports when LogOptions has no path.

    Example:
        ```python
        config = BatchOperationConfig(
            default_page_size=500,
            strict_log_persistence=True
        )
        updater = BatchUpdater(store, config=config)
        ```
    """

    # Pagination settings
    default_page_size: Optional[int] = None
    max_page_size: int = 10000

    # Preview settings
    preview_sample_size: int = 10

    # Read retry settings
    retry_transient_reads: bool = True
    max_read_retries: int = 3
    read_retry_delay: float = 0.5

    # Performance monitoring
    enable_timing: bool = True
    timing_history_size: int = 1000

    # Report settings
    strict_log_persistence: bool = False
    default_log_path: str = "./logs"

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        if self.max_page_size <= 0:
            raise ValueError("max_page_size must be positive")

        if self.default_page_size is not None:
            if self.default_page_size <= 0:
                raise ValueError("default_page_size must be positive or None")
            if self.default_page_size > self.max_page_size:
                logger.warning(
                    f"default_page_size ({self.default_page_size}) exceeds "
                    f"max_page_size ({self.max_page_size}). Setting to max_page_size."
                )
                self.default_page_size = self.max_page_size

        if self.preview_sample_size < 0:
            raise ValueError("preview_sample_size must be non-negative")

        if self.max_read_retries < 1:
            raise ValueError("max_read_retries must be at least 1")

        if self.read_retry_delay < 0:
            raise ValueError("read_retry_delay must be non-negative")

        if self.timing_history_size < 1:
            raise ValueError("timing_history_size must be at least 1")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'BatchOperationConfig':
        """
        Create configuration from a dictionary.

        Unknown keys are ignored, so a larger settings mapping (e.g. loaded
        from YAML) can be passed directly.

        Args:
            config_dict: Dictionary keyed by dataclass field names.

        Returns:
            BatchOperationConfig instance with specified parameters.
        """
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_dict = {k: v for k, v in config_dict.items() if k in valid_fields}

        return cls(**filtered_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'default_page_size': self.default_page_size,
            'max_page_size': self.max_page_size,
            'preview_sample_size': self.preview_sample_size,
            'retry_transient_reads': self.retry_transient_reads,
            'max_read_retries': self.max_read_retries,
            'read_retry_delay': self.read_retry_delay,
            'enable_timing': self.enable_timing,
            'timing_history_size': self.timing_history_size,
            'strict_log_persistence': self.strict_log_persistence,
            'default_log_path': self.default_log_path
        }

    def validate_page_size(self, page_size: Optional[int]) -> Optional[int]:
        """
        Validate and normalize a page size parameter.

        Args:
            page_size: Requested page size, or None to use the default.

        Returns:
            The page size to use, or None for unbounded mode.

        Raises:
            InvalidPageSizeError: If page_size is not a positive integer within bounds.
        """
        if page_size is None:
            return self.default_page_size

        if isinstance(page_size, bool) or not isinstance(page_size, int):
            raise InvalidPageSizeError(
                f"Page size must be an integer, got {type(page_size).__name__}",
                page_size=page_size
            )

        if page_size <= 0:
            raise InvalidPageSizeError(
                f"Page size must be positive, got {page_size}",
                page_size=page_size
            )

        if page_size > self.max_page_size:
            raise InvalidPageSizeError(
                f"Page size {page_size} exceeds maximum ({self.max_page_size})",
                page_size=page_size
            )

        return page_size
