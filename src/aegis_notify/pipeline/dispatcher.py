"""Fan-out of one chat message to the group members who have not read it."""

from __future__ import annotations

import asyncio
import logging

from aegis_notify.clients.push import PushService
from aegis_notify.core.config import NotifyConfig
from aegis_notify.core.types import (
    DeliveryOutcome,
    DeliveryStatus,
    DispatchResult,
    MessageSnapshot,
    NotificationKind,
    UserProfile,
)
from aegis_notify.pipeline.templates import PushTemplateEngine
from aegis_notify.telemetry import PipelineEventType, TelemetryLogger

logger = logging.getLogger(__name__)


def truncate_body(text: str, max_length: int, marker: str = "...") -> str:
    """Cut ``text`` to exactly ``max_length`` characters ending in ``marker``
    when it is longer than ``max_length``.

    A limit shorter than the marker keeps only the head of the marker.
    """
    if len(text) <= max_length:
        return text
    if max_length <= len(marker):
        return marker[:max_length]
    return text[: max_length - len(marker)] + marker


def unread_members(message: MessageSnapshot, members: list[UserProfile]) -> list[UserProfile]:
    """Members who neither sent nor have read ``message``, in member order."""
    return [
        m for m in members
        if not message.is_read_by(m.external_id) and m.external_id != message.sender_id
    ]


class NotificationDispatcher:
    """Sends one push per unread recipient of a message.

    All deliveries for a message run concurrently and are awaited together;
    one recipient's failure is recorded and never affects the others.
    """

    def __init__(
        self,
        push: PushService,
        config: NotifyConfig | None = None,
        templates: PushTemplateEngine | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self._push = push
        self._config = config or NotifyConfig()
        self._templates = templates or PushTemplateEngine(self._config.templates_path)
        self._telemetry = telemetry

    async def dispatch(
        self,
        group_id: str,
        message: MessageSnapshot,
        members: list[UserProfile],
    ) -> DispatchResult:
        result = DispatchResult(group_id=group_id, message_id=message.id)
        recipients = unread_members(message, members)
        if not recipients:
            return result

        logger.info(
            "Sending message %s of group %s to %d recipients",
            message.id, group_id, len(recipients),
        )
        context = {
            "sender_name": message.sender_name or self._config.default_title,
            "body": truncate_body(message.content, self._config.body_max_length, self._config.ellipsis),
            "group_id": group_id,
        }
        settled = await asyncio.gather(
            *(self._deliver(member, context) for member in recipients),
            return_exceptions=True,
        )
        for member, outcome in zip(recipients, settled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                outcome = self._record(group_id, member, outcome)
            result.outcomes.append(outcome)
        return result

    async def _deliver(self, member: UserProfile, context: dict[str, str]) -> DeliveryOutcome:
        request = self._templates.build(NotificationKind.CHAT_MESSAGE, member.id, context)
        try:
            await self._push.send_push(request)
        except Exception as exc:
            return self._record(context["group_id"], member, exc)
        return self._record(context["group_id"], member, None)

    def _record(
        self,
        group_id: str,
        member: UserProfile,
        error: Exception | None,
    ) -> DeliveryOutcome:
        if error is None:
            logger.info("Push delivered to %s (%s)", member.name, member.id)
            outcome = DeliveryOutcome(
                recipient_user_id=member.id,
                recipient_name=member.name,
                status=DeliveryStatus.DELIVERED,
            )
            event_type = PipelineEventType.DELIVERY_SUCCEEDED
        else:
            logger.warning("Push to %s (%s) failed: %s", member.name, member.id, error)
            outcome = DeliveryOutcome(
                recipient_user_id=member.id,
                recipient_name=member.name,
                status=DeliveryStatus.FAILED,
                error=str(error),
            )
            event_type = PipelineEventType.DELIVERY_FAILED
        if self._telemetry is not None:
            self._telemetry.emit(
                event_type,
                group_id,
                recipient_user_id=member.id,
                error=outcome.error,
            )
        return outcome
