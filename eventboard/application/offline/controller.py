"""Offline cache controller: per-route fetch policy over versioned buckets.

Plays the service-worker role for a client runtime. Every request is
classified as API, asset or cross-origin; API requests go network first,
assets cache first, cross-origin requests pass through untouched.
"""

import sqlite3
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import anyio
import httpx

from .buckets import CacheStorage, StoredResponse, rebuild_response, request_cache_url
from .database import OfflineDatabase
from .push import PushData, build_notification, resolve_notification_click
from .queue import PendingActionQueue
from .sync import BackgroundSync, ReplayReport
from ..events import EventHub
from ...config import Settings
from ...constants import (
    DEFAULT_API_PREFIX,
    DEFAULT_OFFLINE_DOCUMENT,
    DEFAULT_SYNC_TAG,
    FETCH_MODE_HEADER,
    MUTATING_METHODS,
    NAVIGATE_MODE,
    PRECACHE_BUCKET_PREFIX,
    RUNTIME_BUCKET_PREFIX,
    SERVICE_UNAVAILABLE_BODY,
)
from ...domain.exceptions import NetworkUnavailableError, PrecacheError
from ...domain.models import ClickOutcome, FetchOutcome, NotificationRequest, RouteClass
from ...logging import debug, info, warning, LogRecord, LogEvent


@dataclass
class FetchResult:
    """A response together with the path that produced it."""

    response: httpx.Response
    outcome: FetchOutcome
    route_class: RouteClass


def is_navigation_request(request: httpx.Request) -> bool:
    mode = request.extensions.get("mode") or request.headers.get(FETCH_MODE_HEADER)
    return mode == NAVIGATE_MODE


def service_unavailable(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        503,
        headers={"Content-Type": "text/plain"},
        content=SERVICE_UNAVAILABLE_BODY.encode("utf-8"),
        request=request,
        extensions={"reason_phrase": b"Service Unavailable"},
    )


class OfflineCacheController:
    """
    Intercepts client fetches and applies the offline-first policy.

    Lifecycle: :meth:`install` precaches the manifest atomically,
    :meth:`activate` purges buckets from other versions and takes control.
    Until activated, requests are not intercepted.

    Args:
        storage: Bucket storage
        queue: Durable pending-action queue
        network: Client used for real network attempts
        origin: Origin this controller is scoped to
        version: Deployment version baked into bucket names
        api_prefix: Path prefix of API-class requests
        precache_manifest: Absolute paths cached at install
        offline_document: Path served to navigations when nothing is cached
        sync_routes: API paths whose failed mutations are queued for replay
        sync_tag: Background-sync tag that triggers replay
        events: Observer hub; a private one is created when omitted
    """

    def __init__(
        self,
        storage: CacheStorage,
        queue: PendingActionQueue,
        network: httpx.AsyncClient,
        origin: str,
        version: str = "v1",
        api_prefix: str = DEFAULT_API_PREFIX,
        precache_manifest: Sequence[str] = ("/", "/index.html", DEFAULT_OFFLINE_DOCUMENT),
        offline_document: str = DEFAULT_OFFLINE_DOCUMENT,
        sync_routes: Sequence[str] = ("/api/registrations",),
        sync_tag: str = DEFAULT_SYNC_TAG,
        events: Optional[EventHub] = None,
    ):
        self.storage = storage
        self.queue = queue
        self.events = events or EventHub()
        self._network = network
        self._origin = httpx.URL(origin)
        self.version = version
        self.api_prefix = api_prefix
        self.precache_manifest = list(precache_manifest)
        self.offline_document = offline_document
        self.sync_routes = list(sync_routes)
        self.sync_tag = sync_tag
        self.sync = BackgroundSync(queue, network, origin, events=self.events)
        self.controlling = False
        self.pending_sync_tags: set[str] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        db: OfflineDatabase,
        network: httpx.AsyncClient,
        events: Optional[EventHub] = None,
    ) -> "OfflineCacheController":
        return cls(
            storage=CacheStorage(db),
            queue=PendingActionQueue(db),
            network=network,
            origin=settings.offline_origin,
            version=settings.offline_cache_version,
            api_prefix=settings.offline_api_prefix,
            precache_manifest=settings.offline_precache_manifest,
            offline_document=settings.offline_document_path,
            sync_routes=settings.offline_sync_routes,
            sync_tag=settings.offline_sync_tag,
            events=events,
        )

    @property
    def origin(self) -> str:
        return str(self._origin)

    @property
    def precache_bucket(self) -> str:
        return f"{PRECACHE_BUCKET_PREFIX}-{self.version}"

    @property
    def runtime_bucket(self) -> str:
        return f"{RUNTIME_BUCKET_PREFIX}-{self.version}"

    @property
    def current_buckets(self) -> List[str]:
        return [self.precache_bucket, self.runtime_bucket]

    def _absolute(self, path: str) -> httpx.URL:
        return self._origin.join(path)

    def _same_origin(self, url: httpx.URL) -> bool:
        return (url.scheme, url.host, url.port) == (
            self._origin.scheme,
            self._origin.host,
            self._origin.port,
        )

    def classify(self, request: httpx.Request) -> RouteClass:
        if not self._same_origin(request.url):
            return RouteClass.CROSS_ORIGIN
        if request.url.path.startswith(self.api_prefix):
            return RouteClass.API
        return RouteClass.ASSET

    # Lifecycle

    async def install(self) -> None:
        """Precache the manifest as a unit.

        Raises:
            PrecacheError: If any manifest entry cannot be fetched with a 200
                status; nothing is written in that case.
        """
        info(
            LogRecord(
                event=LogEvent.OFFLINE_INSTALL.value,
                message="Installing, precaching assets",
                data={"bucket": self.precache_bucket, "assets": len(self.precache_manifest)},
            )
        )
        fetched: Dict[str, StoredResponse] = {}
        failed: List[str] = []

        async def precache(path: str) -> None:
            request = httpx.Request("GET", self._absolute(path))
            try:
                response = await self._network.send(request)
            except httpx.TransportError:
                failed.append(path)
                return
            if response.status_code != 200:
                failed.append(path)
                return
            fetched[path] = StoredResponse.from_response(request_cache_url(request), response)

        async with anyio.create_task_group() as tg:
            for path in self.precache_manifest:
                tg.start_soon(precache, path)

        if failed:
            warning(
                LogRecord(
                    event=LogEvent.OFFLINE_INSTALL.value,
                    message="Precache failed, keeping previous version",
                    data={"version": self.version, "failed": sorted(failed)},
                )
            )
            raise PrecacheError(
                f"Failed to precache {len(failed)} asset(s) for {self.version}",
                failed_paths=sorted(failed),
                version=self.version,
            )

        await self.storage.bucket(self.precache_bucket).put_all(fetched)
        await self.events.publish(
            "install", {"version": self.version, "bucket": self.precache_bucket}
        )

    async def activate(self) -> List[str]:
        """Delete buckets from other versions and take control of fetches."""
        keep = set(self.current_buckets)
        deleted: List[str] = []
        for name in await self.storage.keys():
            if name in keep:
                continue
            await self.storage.delete(name)
            deleted.append(name)
            info(
                LogRecord(
                    event=LogEvent.OFFLINE_ACTIVATE.value,
                    message="Deleted old cache bucket",
                    data={"bucket": name},
                )
            )
            await self.events.publish("bucket_deleted", {"bucket": name})

        self.controlling = True
        await self.events.publish(
            "activate", {"version": self.version, "deleted": deleted}
        )
        return deleted

    async def start(self) -> List[str]:
        """Install then activate immediately."""
        await self.install()
        return await self.activate()

    # Fetch handling

    async def handle(self, request: httpx.Request) -> Optional[FetchResult]:
        """Apply the fetch policy; ``None`` means the request is not intercepted."""
        if not self.controlling:
            return None
        route_class = self.classify(request)
        if route_class is RouteClass.CROSS_ORIGIN:
            return None
        if route_class is RouteClass.API:
            result = await self._network_first(request)
        else:
            result = await self._cache_first(request)

        debug(
            LogRecord(
                event=LogEvent.OFFLINE_FETCH.value,
                message="Handled fetch",
                data={
                    "url": request_cache_url(request),
                    "method": request.method,
                    "outcome": result.outcome.value,
                    "status": result.response.status_code,
                },
            )
        )
        await self.events.publish(
            "fetch",
            {
                "url": request_cache_url(request),
                "method": request.method,
                "route_class": route_class.value,
                "outcome": result.outcome.value,
            },
        )
        return result

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        """Fetch through the controller, passing through what it does not intercept."""
        result = await self.handle(request)
        if result is None:
            response = await self._network.send(request)
            return rebuild_response(response, request)
        return result.response

    async def _store_runtime(self, request: httpx.Request, response: httpx.Response) -> None:
        try:
            await self.storage.bucket(self.runtime_bucket).put(
                StoredResponse.from_response(request_cache_url(request), response)
            )
        except sqlite3.Error as e:
            warning(
                LogRecord(
                    event=LogEvent.OFFLINE_FETCH.value,
                    message="Failed to store runtime response",
                    data={"url": request_cache_url(request)},
                ),
                exc=e,
            )

    async def _network_first(self, request: httpx.Request) -> FetchResult:
        try:
            response = await self._network.send(request)
        except httpx.TransportError as e:
            return await self._api_fallback(request, e)

        response = rebuild_response(response, request)
        if request.method == "GET" and response.status_code == 200:
            await self._store_runtime(request, response)
        return FetchResult(response, FetchOutcome.FULFILLED, RouteClass.API)

    def _is_sync_route(self, request: httpx.Request) -> bool:
        path = request.url.path
        return any(path == route or path.startswith(route.rstrip("/") + "/") for route in self.sync_routes)

    async def _api_fallback(
        self, request: httpx.Request, exc: httpx.TransportError
    ) -> FetchResult:
        url = request_cache_url(request)
        warning(
            LogRecord(
                event=LogEvent.OFFLINE_FALLBACK.value,
                message="Network request failed, using offline fallback",
                data={"url": url, "method": request.method},
            ),
            exc=exc,
        )

        if request.method in MUTATING_METHODS and self._is_sync_route(request):
            action = await self.queue.enqueue(request.method, url, request.content or None)
            self.pending_sync_tags.add(self.sync_tag)
            await self.events.publish(
                "sync_registered", {"tag": self.sync_tag, "action_id": action.id}
            )
            return FetchResult(
                httpx.Response(
                    202, json={"queued": True, "id": action.id}, request=request
                ),
                FetchOutcome.QUEUED,
                RouteClass.API,
            )

        if request.method == "GET":
            cached = await self.storage.match(url)
            if cached is not None:
                return FetchResult(
                    cached.to_response(request), FetchOutcome.SERVED_FROM_CACHE, RouteClass.API
                )

        if is_navigation_request(request):
            offline = await self.storage.match(self.offline_document)
            if offline is not None:
                return FetchResult(
                    offline.to_response(request), FetchOutcome.SERVED_OFFLINE, RouteClass.API
                )

        return FetchResult(
            service_unavailable(request), FetchOutcome.ERROR_RETURNED, RouteClass.API
        )

    async def _cache_first(self, request: httpx.Request) -> FetchResult:
        url = request_cache_url(request)
        if request.method == "GET":
            cached = await self.storage.match(url)
            if cached is not None:
                return FetchResult(
                    cached.to_response(request), FetchOutcome.SERVED_FROM_CACHE, RouteClass.ASSET
                )

        try:
            response = await self._network.send(request)
        except httpx.TransportError as e:
            raise NetworkUnavailableError(
                f"Failed to fetch {url}: {e}", url=url
            ) from e

        response = rebuild_response(response, request)
        if request.method == "GET" and response.status_code == 200:
            await self._store_runtime(request, response)
        return FetchResult(response, FetchOutcome.FULFILLED, RouteClass.ASSET)

    # Background sync and push

    async def handle_sync(self, tag: str) -> Optional[ReplayReport]:
        """Connectivity-restored trigger for ``tag``; other tags are ignored."""
        if tag != self.sync_tag:
            debug(
                LogRecord(
                    event=LogEvent.BACKGROUND_SYNC.value,
                    message="Ignoring unknown sync tag",
                    data={"tag": tag},
                )
            )
            return None
        report = await self.sync.replay_all()
        if report.complete:
            self.pending_sync_tags.discard(tag)
        return report

    async def handle_push(self, data: PushData) -> NotificationRequest:
        notification = build_notification(data)
        info(
            LogRecord(
                event=LogEvent.PUSH_NOTIFICATION.value,
                message="Push notification received",
                data={"title": notification.title, "url": notification.data},
            )
        )
        await self.events.publish("push", notification.model_dump())
        return notification

    async def handle_notification_click(
        self,
        action: Optional[str],
        url: Optional[str],
        open_windows: Iterable[str] = (),
    ) -> ClickOutcome:
        outcome = resolve_notification_click(
            action, url, open_windows, origin=self.origin
        )
        await self.events.publish("notification_click", outcome.model_dump())
        return outcome
