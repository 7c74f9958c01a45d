"""Synchronous ICS REST client."""

from __future__ import annotations

from typing import Any, Optional

from ._base_client import _BaseIcsRest, finish_response
from .sync_bridge import SyncBridge


class IcsRest(_BaseIcsRest):
    """Synchronous ICS REST SDK client.

    Each call blocks until the response is complete; the HTTP exchange
    itself runs in a short-lived worker process.

    Example::

        from ics_rest import IcsRest

        client = IcsRest("5188b9af6e53c84ffd600413", "21989", "https://mcu.example.com:3000/")
        room = client.rooms.create("myRoom", {"userLimit": 30})
        token = client.tokens.create(room["_id"], "user@example.com", "presenter")
    """

    def __init__(
        self,
        service_id: Optional[str] = None,
        service_key: Optional[str] = None,
        url: Optional[str] = None,
        reject_unauthorized: bool = True,
        *,
        bridge: Optional[SyncBridge] = None,
    ) -> None:
        super().__init__(service_id, service_key, url, reject_unauthorized)
        self._request_kwargs["bridge"] = bridge or SyncBridge()

    def send(self, method: str, resource: str, body: Any = None, parse: bool = True) -> Any:
        """Send one signed request and return the decoded response body.

        Raises:
            IcsRestError: (or a subclass) for any status outside 100 and 200-205.
        """
        req, payload = self._prepare(method, resource, body, async_=False)
        req.send(payload)
        return finish_response(req, parse)

    def close(self) -> None:
        """Nothing is pooled between calls; kept for symmetry with the async client."""

    def __enter__(self) -> IcsRest:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
