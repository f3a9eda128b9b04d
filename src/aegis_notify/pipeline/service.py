"""Chat notification pipeline attached to a live user session."""

from __future__ import annotations

import logging
from typing import Any

from aegis_notify.clients.backend import BackendService, HttpBackendClient
from aegis_notify.clients.push import HttpPushClient, PushService
from aegis_notify.clients.streaming import StreamingStore
from aegis_notify.core.config import Settings
from aegis_notify.core.types import Group, Principal
from aegis_notify.pipeline.dispatcher import NotificationDispatcher
from aegis_notify.pipeline.resource_cache import UserGroupsCache
from aegis_notify.pipeline.subscriptions import SubscriptionManager
from aegis_notify.pipeline.templates import PushTemplateEngine
from aegis_notify.telemetry import TelemetryLogger

logger = logging.getLogger(__name__)


class ChatNotificationPipeline:
    """Listens to every group of the session's user and pushes new messages
    to the members who have not read them.

    The pipeline has no inbound API: ``start`` attaches it to a session and
    ``stop`` detaches it.
    """

    def __init__(
        self,
        store: StreamingStore,
        backend: BackendService,
        push: PushService,
        settings: Settings | None = None,
        telemetry: TelemetryLogger | None = None,
        groups_cache: UserGroupsCache | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._backend = backend
        self._push = push
        self.telemetry = telemetry or TelemetryLogger(self._settings.telemetry)
        self.groups_cache = groups_cache or UserGroupsCache(backend, self._settings.groups_cache)
        self.dispatcher = NotificationDispatcher(
            push,
            config=self._settings.notify,
            templates=PushTemplateEngine(self._settings.notify.templates_path),
            telemetry=self.telemetry,
        )
        self.subscriptions = SubscriptionManager(store, backend, self.dispatcher, self.telemetry)
        self._principal: Principal | None = None

    async def start(self, principal: Principal | None) -> list[Group]:
        """Attach to ``principal``'s session and subscribe to their groups."""
        self._principal = principal
        if principal is None:
            logger.warning("Session has no authenticated principal, not listening")
            self.subscriptions.attach(None, [])
            return []
        return await self.refresh()

    async def refresh(self, force_refresh: bool = False) -> list[Group]:
        """Re-read the group list; listeners are rebuilt only when it changed.

        Errors from the group-list fetch propagate to the caller and leave
        the current listeners untouched.
        """
        if self._principal is None:
            return []
        groups = await self.groups_cache.get(self._principal, force_refresh=force_refresh)
        self.subscriptions.attach(self._principal, groups)
        return groups

    def invalidate_groups(self) -> None:
        """Forget the cached group list, e.g. after joining or leaving a group."""
        self.groups_cache.invalidate(self._principal)

    async def drain(self) -> None:
        await self.subscriptions.drain()

    def stop(self) -> None:
        """Detach from the session, closing every listener."""
        self.subscriptions.detach()
        self._principal = None

    async def close(self) -> None:
        self.stop()
        self.telemetry.close()
        for client in (self._backend, self._push):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    async def __aenter__(self) -> ChatNotificationPipeline:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def create_pipeline(store: StreamingStore, settings: Settings | None = None) -> ChatNotificationPipeline:
    """Factory: build a pipeline with HTTP backend and push clients from settings."""
    settings = settings or Settings()
    return ChatNotificationPipeline(
        store=store,
        backend=HttpBackendClient(settings.backend),
        push=HttpPushClient(settings.push),
        settings=settings,
    )
