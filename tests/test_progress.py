"""Tests for progress calculation and the tqdm reporter."""

import io

import pytest

from docstore_batch_ops.batch_operations import ProgressInfo, TqdmProgressReporter, calculate_progress


@pytest.mark.parametrize("current,total,expected", [
    (0, 0, 0),
    (5, 0, 0),
    (0, 3, 0),
    (1, 3, 33),
    (2, 3, 67),
    (1, 2, 50),
    (3, 3, 100),
    (999, 1000, 100),
])
def test_calculate_progress(current, total, expected):
    progress = calculate_progress(current, total)

    assert progress.percentage == expected
    assert progress.current == current
    assert progress.total == total


def test_tqdm_reporter_tracks_progress_and_closes():
    reporter = TqdmProgressReporter(desc="test", file=io.StringIO())

    assert reporter.position == 0
    reporter(ProgressInfo(current=1, total=4, percentage=25))
    reporter(ProgressInfo(current=3, total=4, percentage=75))
    assert reporter.position == 3

    reporter(ProgressInfo(current=4, total=4, percentage=100))
    assert reporter.position == 4
    reporter.close()
