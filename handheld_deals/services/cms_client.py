"""Directus REST session used by every sync job.

A session is opened once per job run with ``async with``. Entering logs in
(or adopts a static token), leaving logs out and discards the token, so no
credential outlives the run.
"""

import json
from typing import Any, AsyncIterator

import httpx
import structlog

from .errors import CmsError
from .http_client import HttpClientService

log = structlog.stdlib.get_logger()

PAGE_SIZE = 100


class DirectusSession:
    """Authenticated access to Directus collections."""

    def __init__(
        self,
        http: HttpClientService,
        email: str | None = None,
        password: str | None = None,
        static_token: str | None = None,
    ) -> None:
        self._http = http
        self._email = email
        self._password = password
        self._static_token = static_token
        self._access_token: str | None = None
        self._refresh_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    async def login(self) -> None:
        """Obtain an access token. Raises CmsError when authentication fails."""
        if self._static_token:
            self._access_token = self._static_token
            log.info("Using static CMS token")
            return

        if not (self._email and self._password):
            raise CmsError("No CMS credentials configured", operation="login", status_code=401)

        try:
            response = await self._http.post(
                "/auth/login",
                json={"email": self._email, "password": self._password},
            )
        except httpx.HTTPStatusError as e:
            raise CmsError(
                "CMS authentication failed",
                operation="login",
                status_code=e.response.status_code,
                original_error=e,
            ) from e
        except httpx.RequestError as e:
            raise CmsError("CMS is unreachable", operation="login", original_error=e) from e

        data = response.json().get("data") or {}
        token = data.get("access_token")
        if not token:
            raise CmsError("CMS login returned no access token", operation="login", status_code=401)

        self._access_token = token
        self._refresh_token = data.get("refresh_token")
        log.info("Authenticated with CMS", email=self._email)

    async def logout(self) -> None:
        """Invalidate the session token. Failures are logged, never raised."""
        if self._refresh_token:
            try:
                await self._http.post(
                    "/auth/logout",
                    json={"refresh_token": self._refresh_token},
                    headers=self._auth_headers(),
                )
                log.debug("Logged out of CMS")
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                log.warning("CMS logout failed", error=str(e))
        self._access_token = None
        self._refresh_token = None

    async def __aenter__(self) -> "DirectusSession":
        await self.login()
        return self

    async def __aexit__(self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: Any) -> None:
        await self.logout()

    def _auth_headers(self) -> dict[str, str]:
        if self._access_token is None:
            raise CmsError("CMS session is not authenticated", operation="request", status_code=401)
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _call(
        self,
        method: str,
        path: str,
        collection: str,
        item_id: str | None = None,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        """Send one request and return the ``data`` member of the response."""
        try:
            response = await self._http.request(
                method,
                path,
                headers=self._auth_headers(),
                params=params,
                json=body,
            )
        except httpx.HTTPStatusError as e:
            raise CmsError(
                f"CMS {method} {collection} failed",
                collection=collection,
                item_id=item_id,
                operation=method,
                status_code=e.response.status_code,
                original_error=e,
            ) from e
        except httpx.RequestError as e:
            raise CmsError(
                f"CMS {method} {collection} failed",
                collection=collection,
                item_id=item_id,
                operation=method,
                original_error=e,
            ) from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json().get("data")

    async def read_items(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
        limit: int | None = -1,
        page: int | None = None,
    ) -> list[dict[str, Any]]:
        """Read items from a collection. ``limit=-1`` reads everything."""
        params: dict[str, Any] = {}
        if filter:
            params["filter"] = json.dumps(filter)
        if fields:
            params["fields"] = ",".join(fields)
        if sort:
            params["sort"] = ",".join(sort)
        if limit is not None:
            params["limit"] = limit
        if page is not None:
            params["page"] = page

        data = await self._call("GET", f"/items/{collection}", collection, params=params)
        return list(data or [])

    async def iter_items(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
        fields: list[str] | None = None,
        sort: list[str] | None = None,
        page_size: int = PAGE_SIZE,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield every matching item, one page at a time."""
        page = 1
        while True:
            items = await self.read_items(
                collection, filter=filter, fields=fields, sort=sort, limit=page_size, page=page
            )
            for item in items:
                yield item
            if len(items) < page_size:
                return
            page += 1

    async def read_item(self, collection: str, item_id: str) -> dict[str, Any] | None:
        """Read one item by id; None when it does not exist."""
        try:
            return await self._call("GET", f"/items/{collection}/{item_id}", collection, item_id=item_id)
        except CmsError as e:
            if e.status_code in (403, 404):
                return None
            raise

    async def create_item(self, collection: str, payload: dict[str, Any]) -> dict[str, Any]:
        data = await self._call("POST", f"/items/{collection}", collection, body=payload)
        return data or {}

    async def update_item(self, collection: str, item_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        data = await self._call(
            "PATCH", f"/items/{collection}/{item_id}", collection, item_id=item_id, body=payload
        )
        return data or {}

    async def delete_item(self, collection: str, item_id: str) -> None:
        await self._call("DELETE", f"/items/{collection}/{item_id}", collection, item_id=item_id)

    async def delete_items(self, collection: str, item_ids: list[str]) -> None:
        """Bulk delete by id list."""
        if not item_ids:
            return
        await self._call("DELETE", f"/items/{collection}", collection, body=list(item_ids))
