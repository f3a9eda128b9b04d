"""Group membership resolution with a per-session cache."""

from __future__ import annotations

import asyncio
import logging

from aegis_notify.clients.backend import BackendService
from aegis_notify.core.errors import MembershipResolutionError
from aegis_notify.core.types import UserProfile

logger = logging.getLogger(__name__)


class MembershipResolver:
    """Resolves and memoizes the member profiles of each group.

    Membership is fetched at most once per group for the resolver's lifetime.
    Concurrent calls for a group that is still resolving share the pending
    resolution. A failure caches nothing, so the next call retries.
    """

    def __init__(self, backend: BackendService) -> None:
        self._backend = backend
        self._members: dict[str, list[UserProfile]] = {}
        self._pending: dict[str, asyncio.Task[list[UserProfile]]] = {}
        self._closed = False

    async def resolve_members(self, group_id: str, member_ids: list[int]) -> list[UserProfile]:
        cached = self._members.get(group_id)
        if cached is not None:
            return cached

        task = self._pending.get(group_id)
        if task is None:
            task = asyncio.ensure_future(self._load(group_id, member_ids))
            self._pending[group_id] = task
        return await asyncio.shield(task)

    def cached(self, group_id: str) -> list[UserProfile] | None:
        return self._members.get(group_id)

    def close(self) -> None:
        """Release every cached membership. Later resolutions are not stored."""
        self._closed = True
        self._members.clear()
        self._pending.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    async def _load(self, group_id: str, member_ids: list[int]) -> list[UserProfile]:
        logger.info("Loading %d members of group %s", len(member_ids), group_id)
        try:
            members = await asyncio.gather(
                *(self._backend.fetch_user_profile(uid) for uid in member_ids)
            )
        except Exception as exc:
            raise MembershipResolutionError(group_id, exc) from exc
        finally:
            if self._pending.get(group_id) is asyncio.current_task():
                del self._pending[group_id]

        members = list(members)
        if not self._closed:
            self._members[group_id] = members
        logger.info("Loaded %d members of group %s", len(members), group_id)
        return members
