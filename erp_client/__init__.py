"""Authenticated API client for the SchoolERP backend."""

from erp_client.client import AuthenticatedApiClient
from erp_client.config.settings import ClientSettings
from erp_client.errors import ApiError, ErrorCode
from erp_client.models.responses import ApiResponse, Pagination, ResponseMeta
from erp_client.resources import RESOURCE_PATHS, ResourceClient, TeacherDiaryClient
from erp_client.session import LoginRedirectHandler, SessionExpiredHandler
from erp_client.storage import InMemoryTokenStore, JsonFileTokenStore, TokenStore, migrate_legacy_keys
from erp_client.token import get_role, get_school_id, is_authenticated

__all__ = [
    "ApiError",
    "ApiResponse",
    "AuthenticatedApiClient",
    "ClientSettings",
    "ErrorCode",
    "InMemoryTokenStore",
    "JsonFileTokenStore",
    "LoginRedirectHandler",
    "Pagination",
    "RESOURCE_PATHS",
    "ResourceClient",
    "ResponseMeta",
    "SessionExpiredHandler",
    "TeacherDiaryClient",
    "TokenStore",
    "get_role",
    "get_school_id",
    "is_authenticated",
    "migrate_legacy_keys",
]
