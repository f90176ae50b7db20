"""Tests for payload validation."""

import pytest

from docstore_batch_ops.batch_operations import BatchValidator, CreateDocumentInput, InvalidPayloadError


def test_update_data_accepts_non_empty_mapping():
    patch = BatchValidator.validate_update_data({"status": "archived", "profile.tier": "pro"})

    assert patch == {"status": "archived", "profile.tier": "pro"}


@pytest.mark.parametrize("value", [{}, None, [], "x", 3, {1: "a"}, {"": 1}])
def test_update_data_rejects_invalid_values(value):
    assert not BatchValidator.is_valid_update_data(value)
    with pytest.raises(InvalidPayloadError, match="non-empty object"):
        BatchValidator.validate_update_data(value)


def test_create_documents_are_normalized():
    docs = BatchValidator.validate_create_documents([
        {"id": "a", "data": {"x": 1}},
        {"data": {"x": 2}},
        CreateDocumentInput(id="c", data={"x": 3}),
    ])

    assert [d.id for d in docs] == ["a", None, "c"]
    assert docs[1].data == {"x": 2}


@pytest.mark.parametrize("documents", [[], None, {"data": {"x": 1}}, "abc"])
def test_create_documents_must_be_non_empty_list(documents):
    with pytest.raises(InvalidPayloadError, match="Documents array must be non-empty"):
        BatchValidator.validate_create_documents(documents)


@pytest.mark.parametrize("item", [
    {"id": "a"},
    {"id": "a", "data": {}},
    {"id": "", "data": {"x": 1}},
    {"id": "a/b", "data": {"x": 1}},
    {"data": "not a mapping"},
])
def test_create_documents_reject_invalid_items(item):
    with pytest.raises(InvalidPayloadError, match="Each document must have valid data"):
        BatchValidator.validate_create_documents([{"id": "ok", "data": {"x": 1}}, item])


def test_create_documents_reject_repeated_explicit_ids():
    with pytest.raises(InvalidPayloadError, match="duplicate document id 'a' \\(first at index 0\\)"):
        BatchValidator.validate_create_documents([
            {"id": "a", "data": {"x": 1}},
            {"data": {"x": 2}},
            {"id": "a", "data": {"x": 3}},
        ])


def test_create_documents_allow_many_generated_ids():
    docs = BatchValidator.validate_create_documents([{"data": {"x": i}} for i in range(3)])

    assert [d.id for d in docs] == [None, None, None]
