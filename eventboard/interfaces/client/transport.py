"""httpx transport that routes every client fetch through the offline controller."""

from typing import Any

import httpx

from ...application.offline.controller import OfflineCacheController


class OfflineFirstTransport(httpx.AsyncBaseTransport):
    """
    Mount an :class:`OfflineCacheController` under an ``httpx.AsyncClient``.

    The controller's own network client must use a plain transport, otherwise
    pass-through requests would loop back here.

    Example:
        >>> network = httpx.AsyncClient()
        >>> controller = OfflineCacheController(storage, queue, network, origin)
        >>> client = httpx.AsyncClient(transport=OfflineFirstTransport(controller))
        >>> await client.get("http://localhost:3000/api/events")
    """

    def __init__(self, controller: OfflineCacheController):
        self.controller = controller

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        return await self.controller.fetch(request)


def create_offline_client(
    controller: OfflineCacheController, **kwargs: Any
) -> httpx.AsyncClient:
    """Client whose requests go through ``controller``, based at its origin."""
    kwargs.setdefault("base_url", controller.origin)
    return httpx.AsyncClient(transport=OfflineFirstTransport(controller), **kwargs)
