"""Authenticated HTTP client for the SchoolERP backend.

Wraps every call with bearer-token injection, envelope unwrapping and failure
classification so that feature code handles errors uniformly: any failure
surfaces as ``ApiError`` with a stable ``code``.

On a 401 the client clears the whole stored session and invokes the
session-expired handler. There is no retry of the underlying operation; the
request is only marked so that a repeated 401 on it cannot loop.

SECURITY: Never logs token values.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from erp_client.config.settings import ClientSettings
from erp_client.errors import (
    ApiError,
    ErrorCode,
    malformed_response,
    network_error,
    translate_status,
    unknown_error,
)
from erp_client.logging_config import configure_logging
from erp_client.models.responses import ApiResponse
from erp_client.models.token import SessionSummary
from erp_client.session import SessionExpiredHandler, log_session_expired
from erp_client.storage import (
    InMemoryTokenStore,
    JsonFileTokenStore,
    TokenStore,
    clear_session,
    migrate_legacy_keys,
    read_token,
)
from erp_client import token as token_inspection

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_TIMEOUT_SECONDS = 10.0

# Marks a request whose 401 has already been handled.
_AUTH_RETRY_EXTENSION = "erp_auth_retried"

_ABSOLUTE_URL = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


class AuthenticatedApiClient:
    """Async client for the SchoolERP REST API.

    Parameters
    ----------
    base_url:
        API root, e.g. ``http://localhost:5000/api``. Relative paths passed to
        the request methods are appended to it.
    store:
        Session storage the bearer token is read from on every request.
    timeout_seconds:
        Per-request timeout; exceeding it fails the call as NETWORK_ERROR.
    with_credentials:
        Keep a cookie jar across calls and send it with each request.
    on_session_expired:
        Invoked after the session is cleared on a 401.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        store: TokenStore | None = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        with_credentials: bool = True,
        on_session_expired: SessionExpiredHandler | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._store: TokenStore = store if store is not None else InMemoryTokenStore()
        self._timeout = httpx.Timeout(timeout_seconds)
        self._with_credentials = with_credentials
        self._on_session_expired: SessionExpiredHandler = on_session_expired or log_session_expired
        self._transport = transport
        self._cookies = httpx.Cookies()

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        store: TokenStore | None = None,
        *,
        on_session_expired: SessionExpiredHandler | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        configure_logs: bool = False,
    ) -> AuthenticatedApiClient:
        """Build a client from ``ClientSettings``.

        Without an explicit store, a JSON file store is used when
        ``token_store_path`` is set, otherwise an in-memory one. Hosts that
        own the process (CLIs, workers) pass ``configure_logs=True`` to install
        JSON logging at ``settings.log_level``.
        """
        if configure_logs:
            configure_logging(settings.log_level)

        if store is None:
            if settings.token_store_path:
                store = JsonFileTokenStore(settings.token_store_path)
            else:
                store = InMemoryTokenStore()

        if settings.migrate_legacy_keys:
            migrate_legacy_keys(store)

        return cls(
            base_url=settings.api_url,
            store=store,
            timeout_seconds=settings.timeout_seconds,
            with_credentials=settings.with_credentials,
            on_session_expired=on_session_expired,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def cookies(self) -> httpx.Cookies:
        return self._cookies

    # ------------------------------------------------------------------
    # Envelope-aware helpers
    # ------------------------------------------------------------------

    async def get(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        model: Any = None,
    ) -> Any:
        """GET ``path`` and return the envelope's ``data`` (or the raw body)."""
        response = await self.request("GET", path, params=params)
        return _validate(unwrap(_decode_body(response)), model)

    async def get_with_meta(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        model: Any = None,
        records_key: str | None = None,
    ) -> ApiResponse[Any]:
        """GET ``path`` and return the full envelope, pagination included.

        A body that is not an envelope is wrapped as a successful one. Some
        list endpoints nest their rows as ``data: {<records_key>: [...],
        pagination: {...}}``; naming the key lifts both to the envelope.

        Raises ``ApiError`` (API_ERROR) when a body that claims to be an
        envelope does not fit its shape. ``model`` is applied to ``data``
        afterwards and its ``ValidationError`` propagates unchanged.
        """
        response = await self.request("GET", path, params=params)
        body = _decode_body(response)
        if not (isinstance(body, dict) and "success" in body):
            body = {"success": True, "data": body}
        if records_key is not None:
            body = _lift_records(body, records_key)

        try:
            envelope = ApiResponse.model_validate(body)
        except ValidationError as exc:
            logger.warning(
                "Malformed response envelope for GET %s: %d error(s)",
                response.request.url,
                exc.error_count(),
                extra={"method": "GET", "url": str(response.request.url), "status_code": response.status_code},
            )
            raise malformed_response(response.status_code) from exc

        if model is None:
            return envelope
        data = _validate(envelope.data, model) if envelope.data is not None else None
        return ApiResponse[model](
            success=envelope.success,
            data=data,
            message=envelope.message,
            error=envelope.error,
            pagination=envelope.pagination,
            meta=envelope.meta,
        )

    async def post(self, path: str, body: Any = None, *, model: Any = None) -> Any:
        response = await self.request("POST", path, json=body)
        return _validate(unwrap(_decode_body(response)), model)

    async def put(self, path: str, body: Any = None, *, model: Any = None) -> Any:
        response = await self.request("PUT", path, json=body)
        return _validate(unwrap(_decode_body(response)), model)

    async def delete(self, path: str, *, model: Any = None) -> Any:
        response = await self.request("DELETE", path)
        return _validate(unwrap(_decode_body(response)), model)

    async def post_form_data(
        self,
        path: str,
        form_data: Mapping[str, Any],
        files: Mapping[str, Any] | Sequence[tuple[str, Any]] | None = None,
        *,
        model: Any = None,
    ) -> Any:
        """POST a multipart form.

        No content type is forced: httpx writes ``multipart/form-data`` with
        its own boundary. Plain fields are sent as filename-less parts, so the
        body is multipart even without files.
        """
        parts = _multipart_fields(form_data)
        if files:
            parts.extend(files.items() if isinstance(files, Mapping) else files)
        response = await self.request("POST", path, files=parts)
        return _validate(unwrap(_decode_body(response)), model)

    # ------------------------------------------------------------------
    # Session helpers bound to this client's store
    # ------------------------------------------------------------------

    def is_authenticated(self) -> bool:
        return token_inspection.is_authenticated(self._store)

    def get_role(self) -> str | None:
        return token_inspection.get_role(self._store)

    def get_school_id(self) -> int | None:
        return token_inspection.get_school_id(self._store)

    def describe_session(self) -> SessionSummary:
        return token_inspection.describe_session(self._store)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        files: Any = None,
    ) -> httpx.Response:
        """Send one request and return the 2xx response.

        Raises
        ------
        ApiError
            For every failure: non-2xx status, no response, or a request
            that could not be built.
        """
        url = self._url(path)
        headers = self._auth_headers()
        authenticated = "Authorization" in headers

        logger.debug(
            "API Request: %s %s %s",
            method,
            url,
            "with auth" if authenticated else "without auth",
            extra={"method": method, "url": url, "authenticated": authenticated},
        )

        async with httpx.AsyncClient(
            timeout=self._timeout,
            cookies=self._cookies if self._with_credentials else None,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            try:
                request = client.build_request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    json=_json_body(json),
                    files=files,
                )
            except (TypeError, ValueError, httpx.InvalidURL) as exc:
                logger.error("Error setting up request %s %s: %s", method, url, exc)
                raise unknown_error(exc) from exc

            try:
                response = await client.send(request)
            except (httpx.UnsupportedProtocol, httpx.LocalProtocolError) as exc:
                logger.error("Request %s %s could not be sent: %s", method, url, exc)
                raise unknown_error(exc) from exc
            except httpx.TransportError as exc:
                logger.error(
                    "Network error - no response received for %s %s: %s",
                    method,
                    url,
                    type(exc).__name__,
                    extra={"method": method, "url": url, "error_code": ErrorCode.NETWORK_ERROR.value},
                )
                raise network_error() from exc
            except httpx.HTTPError as exc:
                logger.error("Request %s %s failed: %s", method, url, exc)
                raise unknown_error(exc) from exc

        if self._with_credentials:
            self._cookies.extract_cookies(response)

        if response.is_success:
            return response

        raise self._handle_failure(response)

    def _handle_failure(self, response: httpx.Response) -> ApiError:
        request = response.request
        retried = bool(request.extensions.get(_AUTH_RETRY_EXTENSION))
        error = translate_status(response.status_code, _decode_body(response), auth_retried=retried)

        log_extra = {
            "method": request.method,
            "url": str(request.url),
            "status_code": response.status_code,
            "error_code": error.code.value,
        }
        if error.code is ErrorCode.SERVER_ERROR:
            logger.error("Server error %d for %s %s", response.status_code, request.method, request.url, extra=log_extra)
        else:
            logger.warning(
                "API error %d (%s) for %s %s",
                response.status_code,
                error.code.value,
                request.method,
                request.url,
                extra=log_extra,
            )

        if error.code is ErrorCode.AUTH_FAILED:
            request.extensions[_AUTH_RETRY_EXTENSION] = True
            clear_session(self._store)
            self._on_session_expired(error)

        return error

    def _auth_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        bearer = read_token(self._store)
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _url(self, path: str) -> str:
        if _ABSOLUTE_URL.match(path):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"


def unwrap(body: Any) -> Any:
    """Envelope ``data`` when present, otherwise the body itself."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _lift_records(body: dict[str, Any], records_key: str) -> dict[str, Any]:
    nested = body.get("data")
    if not isinstance(nested, dict) or records_key not in nested:
        return body
    lifted = {**body, "data": nested[records_key]}
    if body.get("pagination") is None and "pagination" in nested:
        lifted["pagination"] = nested["pagination"]
    return lifted


def _validate(data: Any, model: Any) -> Any:
    if model is None:
        return data
    return TypeAdapter(model).validate_python(data)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _json_body(body: Any) -> Any:
    if isinstance(body, BaseModel):
        return body.model_dump(mode="json", by_alias=True)
    return body


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _multipart_fields(form_data: Mapping[str, Any]) -> list[tuple[str, Any]]:
    """Form fields as filename-less multipart parts; lists repeat the field."""
    parts: list[tuple[str, Any]] = []
    for name, value in form_data.items():
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            payload = item if isinstance(item, bytes) else _form_value(item).encode("utf-8")
            parts.append((name, (None, payload)))
    return parts
