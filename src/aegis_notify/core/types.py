"""Core type definitions shared across all aegis_notify modules."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NotificationKind(StrEnum):
    """Kinds of push notification the client sends."""

    CHAT_MESSAGE = "chat_message"
    WELCOME = "welcome"
    JOURNEY_ALERT = "journey_alert"
    EMERGENCY = "emergency"
    GROUP_INVITE = "group_invite"


class DeliveryStatus(StrEnum):
    """Outcome of a single push-delivery call."""

    DELIVERED = "delivered"
    FAILED = "failed"


class Principal(BaseModel):
    """The authenticated user of the current session."""

    external_id: str
    user_id: int | None = None
    access_token: str | None = None


class Group(BaseModel):
    """A chat conversation with a fixed member list, as served by the backend."""

    model_config = {"populate_by_name": True}

    id: int
    name: str = ""
    members_ids: list[int] = Field(default_factory=list, alias="membersIds")
    description: str | None = None
    type: str | None = None
    owner_id: int | None = Field(default=None, alias="ownerId")


class UserProfile(BaseModel):
    """A resolved group member.

    ``id`` is the backend identifier used to address pushes. ``external_id``
    is the external-auth identifier used by the realtime store for sender and
    read-by markers.
    """

    model_config = {"populate_by_name": True}

    id: int
    name: str = ""
    external_id: str | None = Field(default=None, alias="clerkId")


class MessageSnapshot(BaseModel):
    """A message as observed in one realtime snapshot."""

    model_config = {"populate_by_name": True, "frozen": True}

    id: str
    group_id: str = Field(default="", alias="groupId")
    sender_id: str = Field(alias="senderId")
    sender_name: str | None = Field(default=None, alias="senderName")
    content: str = ""
    read_by: list[str] = Field(default_factory=list, alias="readBy")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_read_by(self, external_id: str | None) -> bool:
        return external_id is not None and external_id in self.read_by


class PushRequest(BaseModel):
    """Payload for one push-delivery call."""

    recipient_user_id: int
    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
    channel_id: str | None = None


class DeliveryOutcome(BaseModel):
    """Result of delivering one push to one recipient."""

    recipient_user_id: int
    recipient_name: str = ""
    status: DeliveryStatus
    error: str | None = None


class DispatchResult(BaseModel):
    """Aggregate result of fanning one message out to its unread recipients."""

    group_id: str
    message_id: str
    outcomes: list[DeliveryOutcome] = Field(default_factory=list)

    @property
    def delivered(self) -> list[int]:
        return [
            o.recipient_user_id for o in self.outcomes
            if o.status == DeliveryStatus.DELIVERED
        ]

    @property
    def failed(self) -> list[int]:
        return [
            o.recipient_user_id for o in self.outcomes
            if o.status == DeliveryStatus.FAILED
        ]
