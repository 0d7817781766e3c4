"""Public models for the SchoolERP API client."""

from erp_client.models.responses import ApiResponse, Pagination, ResponseMeta
from erp_client.models.token import SessionSummary, TokenClaims

__all__ = [
    "ApiResponse",
    "Pagination",
    "ResponseMeta",
    "SessionSummary",
    "TokenClaims",
]
