"""
Batch Validator

Validates mutation payloads before any store access so that bad input fails
the invocation without a single read or write.
"""

import logging
from typing import Any, Dict, List, Mapping, Sequence, Union

from pydantic import ValidationError

from ..models.entities import CreateDocumentInput
from ..batch_ops_exceptions import InvalidPayloadError

logger = logging.getLogger(__name__)


class BatchValidator:
    """Validation helpers for patches and create inputs."""

    @classmethod
    def is_valid_update_data(cls, value: Any) -> bool:
        """True when ``value`` is a non-empty mapping with string keys."""
        return (
            isinstance(value, Mapping)
            and len(value) > 0
            and all(isinstance(key, str) and key for key in value)
        )

    @classmethod
    def validate_update_data(cls, value: Any) -> Dict[str, Any]:
        """
        Validate a patch for update, upsert or preview.

        Returns:
            The patch as a plain dict

        Raises:
            InvalidPayloadError: If the patch is not a non-empty mapping
        """
        if not cls.is_valid_update_data(value):
            raise InvalidPayloadError("Update data must be a non-empty object")
        return dict(value)

    @classmethod
    def validate_create_documents(
        cls,
        documents: Sequence[Union[CreateDocumentInput, Mapping[str, Any]]]
    ) -> List[CreateDocumentInput]:
        """
        Validate and normalize create inputs.

        Each item is a CreateDocumentInput or a mapping with ``data`` and an
        optional ``id``.

        Raises:
            InvalidPayloadError: If the list is empty, any item lacks non-empty data,
                or an explicit id appears more than once
        """
        if isinstance(documents, (str, bytes, Mapping)) or not isinstance(documents, Sequence) or not documents:
            raise InvalidPayloadError("Documents array must be non-empty")

        normalized: List[CreateDocumentInput] = []
        errors: Dict[int, str] = {}
        first_index_by_id: Dict[str, int] = {}

        for index, item in enumerate(documents):
            try:
                doc = item if isinstance(item, CreateDocumentInput) else CreateDocumentInput.model_validate(item)
            except ValidationError as e:
                errors[index] = str(e)
                continue

            if not cls.is_valid_update_data(doc.data):
                errors[index] = "document data must be a non-empty object"
                continue
            if doc.id is not None and (not doc.id or "/" in doc.id):
                errors[index] = f"invalid document id {doc.id!r}"
                continue
            if doc.id is not None:
                if doc.id in first_index_by_id:
                    errors[index] = f"duplicate document id {doc.id!r} (first at index {first_index_by_id[doc.id]})"
                    continue
                first_index_by_id[doc.id] = index

            normalized.append(doc)

        if errors:
            logger.warning(f"Create input validation failed for {len(errors)} documents: {errors}")
            raise InvalidPayloadError(
                f"Each document must have valid data and a unique id "
                f"({len(errors)} invalid, first at index {min(errors)}: {errors[min(errors)]})"
            )

        return normalized
