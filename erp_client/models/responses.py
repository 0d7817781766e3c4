"""Generic API response envelope model.

Every SchoolERP endpoint wraps its payload in this envelope:
{ success: bool, data: T, message?: str, error?: str, pagination?: {...}, meta?: {...} }

Field names follow the backend's camelCase JSON; the Python attributes are
snake_case and both spellings are accepted on input.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


class Pagination(BaseModel):
    """Page window returned by list endpoints.

    List endpoints disagree on spelling: most send ``totalPages``, the TC
    and registration lists send ``pages``, and some use ``currentPage`` with
    ``totalCount`` or ``totalEntries``. All of them are accepted, and fields
    with no counterpart here (``hasNext``, ``hasPrev``) are kept as extras.
    ``total_pages`` is ``None`` when the backend does not report it.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    total: int = Field(default=0, validation_alias=AliasChoices("total", "totalCount", "totalEntries"))
    page: int = Field(default=1, validation_alias=AliasChoices("page", "currentPage"))
    limit: int = 10
    total_pages: int | None = Field(
        default=None,
        validation_alias=AliasChoices("totalPages", "pages", "total_pages"),
        serialization_alias="totalPages",
    )


class ResponseMeta(BaseModel):
    """Request context echoed back by the backend (school scope, filters)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    school_id: int | None = Field(default=None, alias="schoolId")
    user_role: str | None = Field(default=None, alias="userRole")
    applied_filters: dict[str, Any] | None = Field(default=None, alias="appliedFilters")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: T | None = None
    message: str | None = None
    error: str | None = None
    pagination: Pagination | None = None
    meta: ResponseMeta | None = None
