"""Tests for the immutable query plan builder."""

import pytest

from docstore_batch_ops.batch_operations import (
    CollectionNotSelectedError,
    InvalidQueryError,
    QueryPlanBuilder,
    SortDirection,
)


def test_build_requires_collection():
    with pytest.raises(CollectionNotSelectedError, match="Collection path is required"):
        QueryPlanBuilder().where("a", "==", 1).build()


def test_conditions_accumulate_in_order():
    plan = (
        QueryPlanBuilder()
        .collection("orders")
        .where("status", "==", "pending")
        .where("total", ">=", 100)
        .build()
    )

    assert [(c.field, c.operator, c.value) for c in plan.conditions] == [
        ("status", "==", "pending"),
        ("total", ">=", 100),
    ]
    assert plan.order is None
    assert plan.limit is None


def test_builder_methods_do_not_mutate():
    base = QueryPlanBuilder().collection("orders")
    base.where("status", "==", "pending").limit(3)

    assert base.conditions == ()
    assert base.build().limit is None


def test_order_by_accepts_strings_and_later_call_wins():
    plan = QueryPlanBuilder().collection("c").order_by("a").order_by("b", "desc").build()

    assert plan.order.field == "b"
    assert plan.order.direction == SortDirection.DESCENDING


@pytest.mark.parametrize("path", ["", "   ", None, 5])
def test_collection_path_must_be_non_empty_string(path):
    with pytest.raises(InvalidQueryError):
        QueryPlanBuilder().collection(path)


@pytest.mark.parametrize("limit", [0, -1, 1.5, "3", True])
def test_limit_must_be_positive_integer(limit):
    with pytest.raises(InvalidQueryError):
        QueryPlanBuilder().collection("c").limit(limit)


def test_invalid_condition_and_ordering_are_rejected():
    builder = QueryPlanBuilder().collection("c")

    with pytest.raises(InvalidQueryError):
        builder.where("", "==", 1)
    with pytest.raises(InvalidQueryError):
        builder.where("a", "~=", 1)
    with pytest.raises(InvalidQueryError):
        builder.order_by("a", "sideways")


def test_page_keeps_filters_and_replaces_limit():
    plan = QueryPlanBuilder().collection("c").where("a", "==", 1).order_by("n").limit(50).build()

    request = QueryPlanBuilder.page(plan, 10, cursor="after-me")

    assert request.plan.limit == 10
    assert request.plan.conditions == plan.conditions
    assert request.plan.order == plan.order
    assert request.start_after == "after-me"
    assert plan.limit == 50
