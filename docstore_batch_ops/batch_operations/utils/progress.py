"""
Progress Tracking Utilities

Converts running (processed, total) counts into progress snapshots and
provides a ready-made tqdm progress callback.
"""

import logging
from typing import Optional, Any, Dict

from tqdm import tqdm

from ..models.entities import ProgressInfo

logger = logging.getLogger(__name__)


def calculate_progress(current: int, total: int) -> ProgressInfo:
    """
    Build a progress snapshot.

    Args:
        current: Number of documents processed so far, failures included
        total: Total number of documents planned for the invocation

    Returns:
        ProgressInfo with ``percentage = round(current / total * 100)``,
        or 0 when total is 0
    """
    percentage = 0 if total == 0 else round((current / total) * 100)
    return ProgressInfo(current=current, total=total, percentage=percentage)


class TqdmProgressReporter:
    """
    Progress callback that renders a tqdm bar.

    The bar is created on the first callback, once the invocation total is
    known, and closed when the reported count reaches the total.

    Example:
        ```python
        reporter = TqdmProgressReporter(desc="Archiving users")
        result = await updater.collection("users").update(
            {"status": "archived"},
            on_progress=reporter
        )
        ```
    """

    def __init__(self, desc: Optional[str] = None, unit: str = "doc", **tqdm_kwargs: Any):
        self._desc = desc
        self._unit = unit
        self._tqdm_kwargs: Dict[str, Any] = tqdm_kwargs
        self._bar: Optional[tqdm] = None

    def __call__(self, progress: ProgressInfo) -> None:
        if self._bar is None:
            self._bar = tqdm(
                total=progress.total,
                desc=self._desc,
                unit=self._unit,
                **self._tqdm_kwargs
            )

        # Counts only move forward within one invocation
        delta = progress.current - self._bar.n
        if delta > 0:
            self._bar.update(delta)

        if progress.total and progress.current >= progress.total:
            self.close()

    @property
    def position(self) -> int:
        """Number of documents the bar has advanced through."""
        return self._bar.n if self._bar is not None else 0

    def close(self) -> None:
        # tqdm.close() is idempotent
        if self._bar is not None:
            self._bar.close()
            logger.debug(f"Progress bar '{self._desc}' closed at {self._bar.n}/{self._bar.total}")
