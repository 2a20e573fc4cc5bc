"""Shared service utilities: ordering, pagination, enum and time coercion."""
from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any, TypeVar

from fastapi import HTTPException

E = TypeVar("E", bound=enum.Enum)


def apply_ordering(
    query: Any,
    order_by: str,
    order_dir: str,
    allowed_columns: dict[str, Any],
) -> Any:
    """Apply ordering to a query with validation."""
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query: Any, limit: int, offset: int) -> Any:
    """Apply limit/offset to a query."""
    return query.limit(limit).offset(offset)


def validate_enum(value: str, enum_cls: type[E], label: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in enum_cls)
        raise HTTPException(
            status_code=400, detail=f"Invalid {label}. Allowed: {allowed}"
        ) from exc


def from_timestamp(value: Any) -> datetime | None:
    """Convert a Stripe unix timestamp to an aware datetime."""
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
