"""Per-group realtime listeners and the session state they share."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Sequence

from aegis_notify.clients.backend import BackendService
from aegis_notify.clients.streaming import StreamingStore, Unsubscribe
from aegis_notify.core.errors import MembershipResolutionError, SubscriptionError
from aegis_notify.core.types import DispatchResult, Group, MessageSnapshot, Principal
from aegis_notify.pipeline.dispatcher import NotificationDispatcher
from aegis_notify.pipeline.ledger import DedupLedger
from aegis_notify.pipeline.membership import MembershipResolver
from aegis_notify.telemetry import PipelineEventType, TelemetryLogger

logger = logging.getLogger(__name__)


class SessionScope:
    """State owned by one set of subscriptions.

    Created when subscriptions are established and closed when they are torn
    down. Work still running against a closed scope is discarded.
    """

    def __init__(self, principal: Principal, backend: BackendService) -> None:
        self.principal = principal
        self.membership = MembershipResolver(backend)
        self.ledger = DedupLedger()

    @property
    def closed(self) -> bool:
        return self.ledger.closed

    def close(self) -> None:
        self.membership.close()
        self.ledger.close()


class SubscriptionManager:
    """Keeps exactly one realtime listener open per group of the user.

    ``attach`` with a new group list object replaces every listener;
    ``detach`` closes them all and releases the session scope.
    """

    def __init__(
        self,
        store: StreamingStore,
        backend: BackendService,
        dispatcher: NotificationDispatcher,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self._store = store
        self._backend = backend
        self._dispatcher = dispatcher
        self._telemetry = telemetry
        self._groups: Sequence[Group] | None = None
        self._principal: Principal | None = None
        self._scope: SessionScope | None = None
        self._unsubscribers: dict[str, Unsubscribe] = {}
        self._tasks: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    # -- lifecycle -----------------------------------------------------------

    def attach(self, principal: Principal | None, groups: Sequence[Group]) -> None:
        """Subscribe to every group in ``groups`` for ``principal``.

        Calling again with the same list object and principal is a no-op.
        When called from a running loop, snapshots that arrive on other
        threads are processed on that loop.
        """
        if groups is self._groups and principal == self._principal:
            return

        self.detach()
        self._groups = groups
        self._principal = principal

        if not groups:
            logger.info("No groups to listen to")
            return
        if principal is None:
            logger.warning("No authenticated principal, skipping subscriptions")
            return

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        scope = SessionScope(principal, self._backend)
        self._scope = scope
        logger.info("Listening to %d groups", len(groups))
        for group in groups:
            self._subscribe(scope, group)

    def detach(self) -> None:
        """Close every listener and release the session scope.

        Snapshot processing still in flight finishes against the closed
        scope, which drops its results.
        """
        if self._unsubscribers:
            logger.info("Closing %d listeners", len(self._unsubscribers))
        for group_id, unsubscribe in list(self._unsubscribers.items()):
            try:
                unsubscribe()
            except Exception as exc:
                logger.warning("Failed to close listener for group %s: %s", group_id, exc)
            self._emit(PipelineEventType.LISTENER_CLOSED, group_id)
        self._unsubscribers.clear()
        if self._scope is not None:
            self._scope.close()
            self._scope = None
        self._groups = None
        self._principal = None

    async def drain(self) -> None:
        """Wait until every scheduled snapshot has been processed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def subscribed_groups(self) -> list[str]:
        return list(self._unsubscribers)

    @property
    def scope(self) -> SessionScope | None:
        return self._scope

    # -- listeners -----------------------------------------------------------

    def _subscribe(self, scope: SessionScope, group: Group) -> None:
        group_id = str(group.id)
        try:
            unsubscribe = self._store.subscribe(
                group_id,
                functools.partial(self._on_snapshot, scope, group),
                functools.partial(self._on_error, group_id),
            )
        except Exception as exc:
            self._on_error(group_id, exc)
            return
        self._unsubscribers[group_id] = unsubscribe
        self._emit(PipelineEventType.LISTENER_ESTABLISHED, group_id, group_name=group.name)

    def _on_error(self, group_id: str, exc: Exception) -> None:
        error = SubscriptionError(group_id, exc)
        logger.error("%s", error)
        self._emit(PipelineEventType.LISTENER_ERROR, group_id, error=str(exc))

    def _on_snapshot(self, scope: SessionScope, group: Group, messages: list[MessageSnapshot]) -> None:
        if scope.closed or not messages:
            return
        latest = messages[-1]
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None and (self._loop is None or running is self._loop):
            self._schedule(scope, group, latest)
        elif self._loop is not None and not self._loop.is_closed():
            # Snapshot delivered on the store's own thread.
            self._loop.call_soon_threadsafe(self._schedule, scope, group, latest)
        else:
            logger.error("No event loop to process message %s of group %s", latest.id, group.id)

    def _schedule(self, scope: SessionScope, group: Group, message: MessageSnapshot) -> None:
        if scope.closed:
            return
        task = asyncio.get_running_loop().create_task(self.process_message(scope, group, message))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Snapshot processing failed: %s", exc, exc_info=exc)

    # -- processing ----------------------------------------------------------

    async def process_message(
        self,
        scope: SessionScope,
        group: Group,
        message: MessageSnapshot,
    ) -> DispatchResult | None:
        """Evaluate the latest message of a group snapshot.

        Returns the dispatch result, or None when the message was skipped.
        """
        group_id = str(group.id)
        ledger = scope.ledger
        me = scope.principal.external_id

        async with ledger.lock(group_id):
            if not ledger.should_process(group_id, message.id):
                return None

            if message.sender_id == me or message.is_read_by(me):
                ledger.mark_processed(group_id, message.id)
                return None

            logger.info("New message %s in group %s from %s", message.id, group_id, message.sender_name)
            try:
                members = await scope.membership.resolve_members(group_id, group.members_ids)
            except MembershipResolutionError as exc:
                logger.error("%s", exc)
                self._emit(PipelineEventType.MEMBERSHIP_RESOLUTION_FAILED, group_id, error=str(exc.cause))
                return None

            if scope.closed:
                return None
            result = await self._dispatcher.dispatch(group_id, message, members)
            ledger.mark_processed(group_id, message.id)
            return result

    def _emit(self, event_type: PipelineEventType, group_id: str, **details) -> None:
        if self._telemetry is not None:
            self._telemetry.emit(event_type, group_id, **details)
