"""Upstream record models and validation helpers."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from f1x.exceptions import UpstreamValidationError
from f1x.models.cache_entry import CacheEntry
from f1x.models.meeting import Meeting
from f1x.models.session import Session

T = TypeVar("T")


def validate_list(model_type: type[T], data: list[dict[str, Any]]) -> list[T]:
    """Validate a list of dicts against a Pydantic model."""
    try:
        adapter = TypeAdapter(list[model_type])
        return adapter.validate_python(data)
    except ValidationError as exc:
        raise UpstreamValidationError(
            f"Failed to validate {model_type.__name__} response: {exc}"
        ) from exc


def validate_one(model_type: type[T], data: dict[str, Any]) -> T:
    """Validate a single dict against a Pydantic model."""
    try:
        return TypeAdapter(model_type).validate_python(data)
    except ValidationError as exc:
        raise UpstreamValidationError(
            f"Failed to validate {model_type.__name__} record: {exc}"
        ) from exc


__all__ = [
    "CacheEntry",
    "Meeting",
    "Session",
    "validate_list",
    "validate_one",
]
