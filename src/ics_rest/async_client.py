"""Asynchronous ICS REST client."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from ._base_client import _BaseIcsRest, finish_response


class AsyncIcsRest(_BaseIcsRest):
    """Asynchronous ICS REST SDK client.

    Example::

        from ics_rest import AsyncIcsRest

        client = AsyncIcsRest("5188b9af6e53c84ffd600413", "21989", "https://mcu.example.com:3000/")
        rooms = await client.rooms.list(page=1, per_page=20)
        for room in rooms:
            print(room["name"])
    """

    def __init__(
        self,
        service_id: Optional[str] = None,
        service_key: Optional[str] = None,
        url: Optional[str] = None,
        reject_unauthorized: bool = True,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(service_id, service_key, url, reject_unauthorized)
        if transport is not None:
            self._request_kwargs["transport"] = transport

    async def send(self, method: str, resource: str, body: Any = None, parse: bool = True) -> Any:
        """Send one signed request and return the decoded response body.

        Raises:
            IcsRestError: (or a subclass) for any status outside 100 and 200-205.
        """
        req, payload = self._prepare(method, resource, body, async_=True)
        await req.send(payload)
        return finish_response(req, parse)

    async def close(self) -> None:
        """Nothing is pooled between calls; kept for ``async with`` support."""

    async def __aenter__(self) -> AsyncIcsRest:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
