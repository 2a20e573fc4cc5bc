from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):
    """Page of admin list results (customers, invoices, webhook events, ...)."""

    items: list[T]
    count: int = Field(description="Items on this page")
    limit: int
    offset: int
    total: int = Field(description="Rows matching the filters")
