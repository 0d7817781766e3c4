"""Paginated CRUD access to the backend's REST collections.

Collections in ``RESOURCE_PATHS`` share one shape: ``GET /<path>?page=&limit=``
returns an envelope with ``pagination``, ``POST /<path>`` creates, and
``GET/PUT/DELETE /<path>/<id>`` act on single records. The teacher diary
routes each action separately and nests its rows, so it has its own client.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from erp_client.client import AuthenticatedApiClient
from erp_client.models.responses import ApiResponse

logger = logging.getLogger(__name__)

RESOURCE_PATHS: dict[str, str] = {
    "students": "/students",
    "drivers": "/transport/drivers",
    "buses": "/transport/buses",
    "transport_routes": "/transport/routes",
    "trips": "/transport/trips",
    "maintenance": "/transport/maintenance",
    "student_transport": "/transport/student-transport",
    "transfer_certificates": "/tcs",
    "timetable": "/timetable",
}

TEACHER_DIARY_PATH = "/teacher-diary"

DEFAULT_PAGE_SIZE = 10


def _page_params(page: int, limit: int, filters: dict[str, Any]) -> dict[str, Any]:
    params: dict[str, Any] = {"page": page, "limit": limit}
    params.update({key: value for key, value in filters.items() if value is not None})
    return params


class ResourceClient:
    """CRUD wrapper for one collection.

    Parameters
    ----------
    client:
        Authenticated client used for every call.
    base_path:
        Collection path relative to the API root, e.g. ``/students``.
    """

    def __init__(self, client: AuthenticatedApiClient, base_path: str) -> None:
        self._client = client
        self._base_path = "/" + base_path.strip("/")

    @classmethod
    def named(cls, client: AuthenticatedApiClient, name: str) -> ResourceClient:
        """Client for a collection listed in ``RESOURCE_PATHS``."""
        try:
            path = RESOURCE_PATHS[name]
        except KeyError:
            raise KeyError(f"Unknown resource '{name}'") from None
        return cls(client, path)

    @property
    def base_path(self) -> str:
        return self._base_path

    def _item_path(self, item_id: int | str) -> str:
        return f"{self._base_path}/{item_id}"

    async def list(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        **filters: Any,
    ) -> ApiResponse[Any]:
        """One page of the collection as a full envelope (``pagination`` included)."""
        return await self._client.get_with_meta(self._base_path, params=_page_params(page, limit, filters))

    async def retrieve(self, item_id: int | str) -> Any:
        return await self._client.get(self._item_path(item_id))

    async def create(self, body: Any) -> Any:
        return await self._client.post(self._base_path, body)

    async def update(self, item_id: int | str, body: Any) -> Any:
        return await self._client.put(self._item_path(item_id), body)

    async def destroy(self, item_id: int | str) -> Any:
        return await self._client.delete(self._item_path(item_id))

    async def iter_all(self, limit: int = DEFAULT_PAGE_SIZE, **filters: Any) -> AsyncIterator[Any]:
        """Yield every record, fetching page after page.

        Stops at the reported page count when the backend sends a non-zero
        one, and otherwise at the first short or empty page.
        """
        page = 1
        while True:
            envelope = await self.list(page=page, limit=limit, **filters)
            items = envelope.data if envelope.data is not None else []
            if not isinstance(items, list):
                raise TypeError(
                    f"Expected a list from {self._base_path}, got {type(items).__name__}"
                )

            for item in items:
                yield item

            total_pages = envelope.pagination.total_pages if envelope.pagination is not None else None
            if total_pages:
                if page >= total_pages:
                    return
            elif len(items) < limit:
                return

            if not items:
                return
            page += 1
            logger.debug("Fetching page %d of %s", page, self._base_path)


class TeacherDiaryClient(ResourceClient):
    """Teacher diary entries.

    ``list`` returns the signed-in teacher's own entries and ``view`` the
    read-only listing for students, parents and school admins. Single-entry
    calls return the entry itself rather than the ``{"entry": ...}`` wrapper
    the backend sends.
    """

    def __init__(self, client: AuthenticatedApiClient) -> None:
        super().__init__(client, TEACHER_DIARY_PATH)

    async def list(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        **filters: Any,
    ) -> ApiResponse[Any]:
        return await self._entries("/teacher/entries", page, limit, filters)

    async def view(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        **filters: Any,
    ) -> ApiResponse[Any]:
        return await self._entries("/view", page, limit, filters)

    async def retrieve(self, item_id: int | str) -> Any:
        return _entry(await self._client.get(f"{self._base_path}/entry/{item_id}"))

    async def create(self, body: Any) -> Any:
        return _entry(await self._client.post(f"{self._base_path}/create", body))

    async def update(self, item_id: int | str, body: Any) -> Any:
        return _entry(await self._client.put(f"{self._base_path}/update/{item_id}", body))

    async def destroy(self, item_id: int | str) -> Any:
        return await self._client.delete(f"{self._base_path}/delete/{item_id}")

    async def stats(self) -> Any:
        return await self._client.get(f"{self._base_path}/stats")

    async def _entries(self, suffix: str, page: int, limit: int, filters: dict[str, Any]) -> ApiResponse[Any]:
        return await self._client.get_with_meta(
            self._base_path + suffix,
            params=_page_params(page, limit, filters),
            records_key="entries",
        )


def _entry(data: Any) -> Any:
    if isinstance(data, dict) and "entry" in data:
        return data["entry"]
    return data
