"""Column types shared across models."""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator

LABEL_ENCODING_VERSION = 1


def normalize_label(value: Any) -> str:
    """Trim a label and collapse inner whitespace."""
    if value is None:
        return ""
    return " ".join(str(value).split())


def normalize_labels(values: Iterable[Any] | None) -> list[str]:
    """Return cleaned labels in input order without case-insensitive duplicates."""
    labels: list[str] = []
    seen: set[str] = set()
    for value in values or ():
        label = normalize_label(value)
        key = label.casefold()
        if not label or key in seen:
            continue
        seen.add(key)
        labels.append(label)
    return labels


class LabelList(TypeDecorator):
    """Ordered taste labels stored as ``{"version": 1, "labels": [...]}``.

    Bare JSON arrays written before the envelope existed decode as version 1.
    """

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value: Iterable[Any] | None, dialect: Dialect) -> dict[str, Any]:
        return {"version": LABEL_ENCODING_VERSION, "labels": normalize_labels(value)}

    def process_result_value(self, value: Any, dialect: Dialect) -> list[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return normalize_labels(value)
        if isinstance(value, dict):
            version = value.get("version")
            if version != LABEL_ENCODING_VERSION:
                raise ValueError(f"Unsupported label encoding version: {version!r}")
            return normalize_labels(value.get("labels"))
        raise ValueError(f"Unexpected label payload type: {type(value).__name__}")
