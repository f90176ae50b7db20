"""Tests for the BatchUpdater facade against the in-memory store."""

import asyncio
import os

import pytest

from docstore_batch_ops.batch_operations import (
    BatchOperationConfig,
    BatchOptions,
    BatchUpdater,
    CollectionNotSelectedError,
    CreateDocumentInput,
    InvalidPageSizeError,
    InvalidPayloadError,
    InvalidQueryError,
    LogOptions,
    LogPersistenceError,
    OperationLogWriter,
    QueryExecutionError,
    TransientQueryError,
)
from docstore_batch_ops.store_backends import InMemoryDocumentStore


def _no_store_access(store: InMemoryDocumentStore) -> bool:
    stats = store.stats
    return stats.count_queries == 0 and stats.fetch_queries == 0 and stats.sessions_opened == 0


class FailingLogWriter(OperationLogWriter):
    def write(self, log, report, options):
        raise OSError("disk full")


# ----------------------------------------------------------------------
# Query building
# ----------------------------------------------------------------------

def test_query_methods_return_new_updaters(updater):
    base = updater.collection("users")
    narrowed = base.where("status", "==", "inactive").order_by("rank", "desc").limit(5)

    assert base.build_plan().conditions == ()
    assert base.build_plan().limit is None

    plan = narrowed.build_plan()
    assert plan.collection == "users"
    assert len(plan.conditions) == 1
    assert plan.order.field == "rank"
    assert plan.limit == 5


def test_collection_resets_query_state(updater):
    plan = updater.collection("users").where("status", "==", "x").limit(3).collection("orders").build_plan()

    assert plan.collection == "orders"
    assert plan.conditions == ()
    assert plan.limit is None


def test_unsupported_operator_is_rejected(updater):
    with pytest.raises(InvalidQueryError):
        updater.collection("users").where("status", "like", "in%")


# ----------------------------------------------------------------------
# Update / upsert
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_applies_patch_to_matches_only(store, updater, seed_users):
    seed_users(9)

    result = await updater.collection("users").where("status", "==", "inactive").update({"status": "archived"})

    assert result.success_count == 6
    assert result.failure_count == 0
    assert result.total_count == 6
    assert result.failed_doc_ids is None
    docs = store.documents("users")
    assert sum(1 for d in docs.values() if d["status"] == "archived") == 6
    assert sum(1 for d in docs.values() if d["status"] == "active") == 3


@pytest.mark.asyncio
async def test_update_with_dotted_path_sets_nested_field(store, updater, seed_users):
    seed_users(3)

    await updater.collection("users").update({"profile.tier": "pro"})

    profile = store.get_document("users", "user-0001")["profile"]
    assert profile == {"tier": "pro", "region": "eu"}


@pytest.mark.asyncio
async def test_upsert_deep_merges_into_existing_documents(store, updater, seed_users):
    seed_users(3)

    result = await updater.collection("users").upsert({"profile": {"tier": "pro"}, "flag": True})

    assert result.success_count == 3
    doc = store.get_document("users", "user-0002")
    assert doc["profile"] == {"tier": "pro", "region": "eu"}
    assert doc["flag"] is True


@pytest.mark.asyncio
async def test_one_failed_write_is_reported_not_raised(store, updater):
    store.add_documents("items", {"a": {"n": 1}, "b": {"n": 2}, "c": {"n": 3}})
    store.inject_failure("items", "b", "PERMISSION_DENIED: locked")

    result = await updater.collection("items").update({"touched": True})

    assert result.success_count == 2
    assert result.failure_count == 1
    assert result.total_count == 3
    assert result.failed_doc_ids == ["b"]
    assert result.has_failures
    assert "touched" not in store.get_document("items", "b")


@pytest.mark.asyncio
async def test_counts_always_sum_to_total(store, updater, seed_users):
    seed_users(40)
    for i in range(0, 40, 7):
        store.inject_failure("users", f"user-{i:04d}")

    result = await updater.collection("users").update({"x": 1}, page_size=6)

    assert result.success_count + result.failure_count == result.total_count == 40
    assert len(result.failed_doc_ids) == result.failure_count == 6


@pytest.mark.asyncio
async def test_zero_matches_opens_no_write_session(store, updater, seed_users):
    seed_users(5)

    unbounded = await updater.collection("users").where("status", "==", "missing").update({"x": 1})
    paginated = await updater.collection("users").where("status", "==", "missing").update({"x": 1}, page_size=2)

    for result in (unbounded, paginated):
        assert (result.success_count, result.failure_count, result.total_count) == (0, 0, 0)
        assert result.failed_doc_ids is None
    assert store.stats.sessions_opened == 0
    assert store.stats.count_queries == 1


@pytest.mark.asyncio
async def test_paginated_and_unbounded_runs_reach_the_same_state():
    final_states = []
    for page_size in (None, 1000, 7):
        store = InMemoryDocumentStore(seed=99)
        for i in range(2500):
            store.add_document("users", f"u{i:05d}", {"status": "inactive" if i % 2 else "active", "n": i})
        store.inject_failure("users", "u00011")

        result = await BatchUpdater(store).collection("users").where("status", "==", "inactive").update(
            {"status": "archived"}, page_size=page_size
        )

        assert result.success_count == 1249
        assert result.failed_doc_ids == ["u00011"]
        final_states.append(store.documents("users"))

    assert final_states[0] == final_states[1] == final_states[2]


@pytest.mark.asyncio
async def test_pages_are_drained_sequentially(store, updater, seed_users):
    seed_users(5)

    result = await updater.collection("users").update({"x": 1}, page_size=2)

    assert result.success_count == 5
    assert store.stats.count_queries == 1
    assert store.stats.fetch_queries == 3
    assert store.stats.sessions_opened == 3
    assert store.stats.max_concurrent_sessions == 1
    assert store.stats.open_sessions == 0


@pytest.mark.asyncio
async def test_exact_multiple_of_page_size_ends_on_empty_page(store, updater, seed_users):
    seed_users(4)

    result = await updater.collection("users").update({"x": 1}, page_size=2)

    assert result.success_count == 4
    assert store.stats.fetch_queries == 3
    assert store.stats.sessions_opened == 2


@pytest.mark.asyncio
async def test_limit_is_respected_across_pages(store, updater, seed_users):
    seed_users(10)

    result = await updater.collection("users").order_by("rank").limit(5).update({"x": 1}, page_size=2)

    assert result.total_count == 5
    touched = sorted(doc_id for doc_id, d in store.documents("users").items() if d.get("x") == 1)
    assert touched == [f"user-{i:04d}" for i in range(5)]


@pytest.mark.asyncio
async def test_default_page_size_comes_from_config(store, seed_users):
    seed_users(6)
    updater = BatchUpdater(store, config=BatchOperationConfig(default_page_size=4))

    await updater.collection("users").update({"x": 1})

    assert store.stats.count_queries == 1
    assert store.stats.sessions_opened == 2


@pytest.mark.asyncio
async def test_batch_options_object_and_keyword_overrides(store, updater, seed_users):
    seed_users(6)
    seen = []

    options = BatchOptions(page_size=3, on_progress=seen.append)
    await updater.collection("users").update({"x": 1}, options)
    assert store.stats.sessions_opened == 2
    assert len(seen) == 6

    await updater.collection("users").update({"x": 2}, options, page_size=6)
    assert store.stats.sessions_opened == 3


# ----------------------------------------------------------------------
# Progress
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_progress_is_monotonic_and_reaches_100(store, updater, seed_users):
    seed_users(30)
    store.inject_failure("users", "user-0004")
    reports = []

    await updater.collection("users").update({"x": 1}, page_size=8, on_progress=reports.append)

    assert len(reports) == 30
    assert [p.current for p in reports] == list(range(1, 31))
    assert all(p.total == 30 for p in reports)
    percentages = [p.percentage for p in reports]
    assert percentages == sorted(percentages)
    assert percentages[-1] == 100


@pytest.mark.asyncio
async def test_progress_not_reported_for_zero_matches(updater, seed_users):
    seed_users(3)
    reports = []

    await updater.collection("users").where("rank", ">", 100).delete(on_progress=reports.append)

    assert reports == []


# ----------------------------------------------------------------------
# Delete
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_removes_matches_and_reports_ids(store, updater, seed_users):
    seed_users(9)
    store.inject_failure("users", "user-0001")

    result = await updater.collection("users").where("status", "==", "inactive").delete(page_size=4)

    assert result.success_count == 5
    assert result.failed_doc_ids == ["user-0001"]
    assert "user-0001" not in result.deleted_ids
    assert sorted(result.deleted_ids) == ["user-0002", "user-0004", "user-0005", "user-0007", "user-0008"]
    remaining = store.documents("users")
    assert len(remaining) == 4
    assert "user-0001" in remaining


@pytest.mark.asyncio
async def test_delete_with_descending_order_and_limit(store, updater, seed_users):
    seed_users(10)

    result = await updater.collection("users").order_by("rank", "desc").limit(3).delete(page_size=2)

    assert sorted(result.deleted_ids) == ["user-0007", "user-0008", "user-0009"]
    assert len(store.documents("users")) == 7


# ----------------------------------------------------------------------
# Create
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_with_explicit_and_generated_ids(store, updater):
    result = await updater.collection("audit").create([
        CreateDocumentInput(id="run-1", data={"kind": "archive"}),
        {"data": {"kind": "review"}},
        {"id": "run-2", "data": {"kind": "purge"}},
    ])

    assert result.success_count == 3
    assert result.created_ids[:2] == ["run-1", "run-2"]
    generated = result.created_ids[2]
    assert len(generated) == 20
    assert store.get_document("audit", generated) == {"kind": "review"}


@pytest.mark.asyncio
async def test_create_existing_id_is_a_failure(store, updater):
    store.add_document("audit", "run-1", {"kind": "old"})

    result = await updater.collection("audit").create([
        {"id": "run-1", "data": {"kind": "new"}},
        {"id": "run-3", "data": {"kind": "new"}},
    ])

    assert result.failure_count == 1
    assert result.failed_doc_ids == ["run-1"]
    assert result.created_ids == ["run-3"]
    assert store.get_document("audit", "run-1") == {"kind": "old"}


@pytest.mark.asyncio
async def test_create_ignores_conditions_and_chunks_by_page_size(store, updater):
    docs = [{"id": f"d{i}", "data": {"i": i}} for i in range(5)]

    result = await updater.collection("bulk").where("i", ">", 100).create(docs, page_size=2)

    assert result.created_ids == [f"d{i}" for i in range(5)]
    assert store.stats.sessions_opened == 3
    assert store.stats.fetch_queries == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("documents", [
    [],
    [{"data": {}}],
    [{"id": "a/b", "data": {"x": 1}}],
    [{"id": "run-1", "data": {"x": 1}}, {"data": {"x": 2}}, {"id": "run-1", "data": {"x": 3}}],
])
async def test_create_rejects_invalid_input(store, updater, documents):
    with pytest.raises(InvalidPayloadError):
        await updater.collection("audit").create(documents)

    assert _no_store_access(store)


# ----------------------------------------------------------------------
# Preview and field reads
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_preview_shallow_merges_and_writes_nothing(store, updater, seed_users):
    seed_users(15)
    before = store.documents("users")

    preview = await updater.collection("users").where("status", "==", "inactive").preview(
        {"profile": {"tier": "pro"}}
    )

    assert preview.affected_count == 10
    assert preview.affected_fields == ["profile"]
    assert len(preview.samples) == 10
    sample = preview.samples[0]
    assert sample.before["profile"] == {"tier": "free", "region": "eu"}
    assert sample.after["profile"] == {"tier": "pro"}
    assert sample.after["name"] == sample.before["name"]
    assert store.documents("users") == before
    assert store.stats.sessions_opened == 0


@pytest.mark.asyncio
async def test_preview_sample_size_is_configurable(store, seed_users):
    seed_users(6)
    updater = BatchUpdater(store, config=BatchOperationConfig(preview_sample_size=2))

    preview = await updater.collection("users").preview({"x": 1})

    assert preview.affected_count == 6
    assert len(preview.samples) == 2


@pytest.mark.asyncio
async def test_get_fields_reads_nested_and_missing_values(store, updater):
    store.add_documents("users", {
        "a": {"profile": {"tier": "pro"}},
        "b": {"profile": {}},
    })

    values = await updater.collection("users").get_fields("profile.tier")

    assert {v.id: v.value for v in values} == {"a": "pro", "b": None}


# ----------------------------------------------------------------------
# Validation order and query failures
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_operation_without_collection_raises(store):
    updater = BatchUpdater(store)

    with pytest.raises(CollectionNotSelectedError, match="Call .collection\\(\\) first"):
        await updater.update({"x": 1})
    with pytest.raises(CollectionNotSelectedError):
        await updater.delete()

    assert _no_store_access(store)


@pytest.mark.asyncio
@pytest.mark.parametrize("patch", [{}, None, ["status"], "archived"])
async def test_invalid_patch_raises_before_store_access(store, updater, seed_users, patch):
    seed_users(3)

    with pytest.raises(InvalidPayloadError):
        await updater.collection("users").update(patch)

    assert _no_store_access(store)


@pytest.mark.asyncio
@pytest.mark.parametrize("page_size", [0, -5, 10001, "10", 2.5, True])
async def test_invalid_page_size_raises_before_store_access(store, updater, seed_users, page_size):
    seed_users(3)

    with pytest.raises(InvalidPageSizeError):
        await updater.collection("users").update({"x": 1}, page_size=page_size)

    assert _no_store_access(store)


@pytest.mark.asyncio
async def test_query_failure_raises_without_writes(store, updater, seed_users):
    seed_users(4)
    store.inject_query_error(RuntimeError("FAILED_PRECONDITION: missing index"))

    with pytest.raises(QueryExecutionError) as exc_info:
        await updater.collection("users").where("status", "==", "inactive").update({"x": 1}, page_size=2)

    assert exc_info.value.phase == "count"
    assert exc_info.value.collection == "users"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert store.stats.sessions_opened == 0
    assert all("x" not in d for d in store.documents("users").values())


@pytest.mark.asyncio
async def test_transient_read_failure_is_retried(store, updater, seed_users):
    seed_users(4)
    store.inject_query_error(TransientQueryError("UNAVAILABLE: try again"))

    result = await updater.collection("users").update({"x": 1})

    assert result.success_count == 4
    assert store.stats.fetch_queries == 2


# ----------------------------------------------------------------------
# Operation reports
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_log_report_is_written(store, updater, seed_users, tmp_path):
    seed_users(3)
    store.inject_failure("users", "user-0002", "ABORTED: contention")
    log_dir = tmp_path / "reports"

    result = await updater.collection("users").where("status", "==", "inactive").update(
        {"status": "archived"},
        log=LogOptions(enabled=True, path=str(log_dir), filename="archive.log")
    )

    assert result.log_file_path == os.path.join(str(log_dir), "archive.log")
    report = (log_dir / "archive.log").read_text(encoding="utf-8")
    assert "Operation: UPDATE" in report
    assert "Collection: users" in report
    assert '  - status == "inactive"' in report
    assert '"status": "archived"' in report
    assert "Total: 2\nSuccess: 1\nFailure: 1" in report
    assert "[SUCCESS] user-0001" in report
    assert "[FAILURE] user-0002\n  Error: ABORTED: contention" in report


@pytest.mark.asyncio
async def test_log_report_uses_default_path_and_filename(store, updater, config, seed_users):
    seed_users(2)

    result = await updater.collection("users").delete(log=LogOptions(enabled=True))

    assert os.path.dirname(result.log_file_path) == config.default_log_path
    assert os.path.basename(result.log_file_path).startswith("delete-")
    assert os.path.exists(result.log_file_path)


@pytest.mark.asyncio
async def test_zero_match_invocation_still_writes_report(updater, tmp_path):
    result = await updater.collection("empty").delete(log=LogOptions(enabled=True, path=str(tmp_path)))

    report = open(result.log_file_path, encoding="utf-8").read()
    assert "Total: 0" in report
    assert "DETAILS" not in report


@pytest.mark.asyncio
async def test_logging_disabled_writes_nothing(updater, seed_users, config):
    seed_users(2)

    result = await updater.collection("users").update({"x": 1})

    assert result.log_file_path is None
    assert not os.path.exists(config.default_log_path)


@pytest.mark.asyncio
async def test_report_failure_is_lenient_by_default(store, seed_users):
    seed_users(3)
    updater = BatchUpdater(store, log_writer=FailingLogWriter())

    result = await updater.collection("users").update({"x": 1}, log=LogOptions(enabled=True))

    assert result.success_count == 3
    assert result.log_file_path is None


@pytest.mark.asyncio
async def test_report_failure_raises_in_strict_mode(store, seed_users):
    seed_users(3)
    updater = BatchUpdater(
        store,
        config=BatchOperationConfig(strict_log_persistence=True),
        log_writer=FailingLogWriter()
    )

    with pytest.raises(LogPersistenceError) as exc_info:
        await updater.collection("users").update({"x": 1}, log=LogOptions(enabled=True))

    assert exc_info.value.outcome.success_count == 3
    assert isinstance(exc_info.value.__cause__, OSError)


# ----------------------------------------------------------------------
# Timing and concurrency
# ----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_timing_is_recorded_per_invocation(updater, seed_users):
    seed_users(3)

    result = await updater.collection("users").update({"x": 1})
    await updater.collection("users").update({"x": 2})

    assert result.timing is not None
    assert result.timing.execution_time >= 0
    assert result.timing.collection == "users"
    assert (result.timing.documents_processed, result.timing.pages, result.timing.sessions) == (3, 1, 1)
    stats = updater.get_operation_stats("update")
    assert stats.total_operations == 2
    assert "update" in updater.get_performance_summary()

    updater.clear_timing_history()
    assert updater.get_timing_history() == []


@pytest.mark.asyncio
async def test_timing_records_pages_and_bounded_history(store, seed_users):
    seed_users(10)
    updater = BatchUpdater(store, config=BatchOperationConfig(read_retry_delay=0.0, timing_history_size=2))

    for value in range(3):
        result = await updater.collection("users").update({"x": value}, page_size=4)

    assert (result.timing.pages, result.timing.sessions, result.timing.documents_processed) == (3, 3, 10)
    assert result.timing.metadata["page_size"] == 4
    assert len(updater.get_timing_history()) == 2
    stats = updater.get_operation_stats("update")
    assert stats.total_operations == 2
    assert stats.total_documents == 20
    assert stats.average_pages == 3


@pytest.mark.asyncio
async def test_timing_can_be_disabled(store, seed_users):
    seed_users(2)
    updater = BatchUpdater(store, config=BatchOperationConfig(enable_timing=False))

    result = await updater.collection("users").update({"x": 1})

    assert result.timing is None
    assert updater.get_timing_history() == []


@pytest.mark.asyncio
async def test_concurrent_invocations_do_not_share_state(store, updater, seed_users):
    seed_users(12, collection="left")
    seed_users(7, collection="right")

    left, right = await asyncio.gather(
        updater.collection("left").update({"side": "L"}, page_size=5),
        updater.collection("right").delete(page_size=3),
    )

    assert left.total_count == 12
    assert right.total_count == 7
    assert all(d["side"] == "L" for d in store.documents("left").values())
    assert store.documents("right") == {}
