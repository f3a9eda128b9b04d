"""Shared test fixtures and fakes."""

from __future__ import annotations

import asyncio

import pytest

from aegis_notify.clients.push import MockPushService
from aegis_notify.clients.streaming import InMemoryStreamingStore
from aegis_notify.core.errors import BackendError
from aegis_notify.core.types import Group, MessageSnapshot, Principal, UserProfile


class FakeBackend:
    """In-memory backend that records every call.

    Profile fetches block on ``gate`` when it is set, so tests can hold a
    resolution in flight.
    """

    def __init__(self, profiles: list[UserProfile], groups: list[Group] | None = None) -> None:
        self.profiles = {p.id: p for p in profiles}
        self.groups = list(groups or [])
        self.failing_ids: set[int] = set()
        self.groups_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.profile_calls: list[int] = []
        self.group_calls = 0

    async def fetch_user_profile(self, user_id: int) -> UserProfile:
        self.profile_calls.append(user_id)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if user_id in self.failing_ids:
            raise BackendError(f"user {user_id} unavailable")
        return self.profiles[user_id]

    async def fetch_user_groups(self, principal: Principal) -> list[Group]:
        self.group_calls += 1
        await asyncio.sleep(0)
        if self.groups_error is not None:
            raise self.groups_error
        return list(self.groups)


def make_message(
    message_id: str,
    sender_id: str,
    content: str = "hello",
    read_by: list[str] | None = None,
    sender_name: str | None = None,
    group_id: str = "10",
) -> MessageSnapshot:
    return MessageSnapshot(
        id=message_id,
        group_id=group_id,
        sender_id=sender_id,
        sender_name=sender_name if sender_name is not None else f"User {sender_id}",
        content=content,
        read_by=read_by or [],
    )


@pytest.fixture
def members() -> list[UserProfile]:
    """Members A, B and C with backend ids 1, 2 and 3."""
    return [
        UserProfile(id=1, name="Ana", external_id="A"),
        UserProfile(id=2, name="Bruno", external_id="B"),
        UserProfile(id=3, name="Carla", external_id="C"),
    ]


@pytest.fixture
def group() -> Group:
    return Group(id=10, name="Family", members_ids=[1, 2, 3])


@pytest.fixture
def principal() -> Principal:
    return Principal(external_id="A", user_id=1, access_token="token-a")


@pytest.fixture
def backend(members, group) -> FakeBackend:
    return FakeBackend(members, [group])


@pytest.fixture
def push() -> MockPushService:
    return MockPushService()


@pytest.fixture
def store() -> InMemoryStreamingStore:
    return InMemoryStreamingStore()


@pytest.fixture
def message_factory():
    return make_message
