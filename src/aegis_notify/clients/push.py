"""Push-delivery service Protocol, HTTP client and mock implementation."""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol, runtime_checkable

import httpx

from aegis_notify.core.config import PushConfig
from aegis_notify.core.errors import DeliveryError
from aegis_notify.core.types import PushRequest

logger = logging.getLogger(__name__)

PlatformName = Literal["ANDROID", "IOS"]


@runtime_checkable
class PushService(Protocol):
    """Protocol for push-delivery services."""

    async def send_push(self, request: PushRequest) -> None: ...


class HttpPushClient:
    """Sends pushes through the backend's push endpoint.

    Each call is made exactly once; failed deliveries are reported to the
    caller and never retried here.
    """

    def __init__(self, config: PushConfig) -> None:
        self.config = config
        headers: dict[str, str] = {}
        if config.api_token:
            headers["Authorization"] = f"Bearer {config.api_token}"
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers=headers,
        )

    async def send_push(self, request: PushRequest) -> None:
        payload = {
            "userId": request.recipient_user_id,
            "title": request.title,
            "body": request.body,
            "data": request.data,
            "channelId": request.channel_id or self.config.default_channel,
        }
        await self._call("POST", "/api/push/sendToUser", json=payload)

    async def register_token(self, user_id: int, token: str, platform: PlatformName) -> None:
        """Register a device push token for ``user_id``."""
        await self._call(
            "POST",
            "/api/notification-tokens",
            json={"userId": user_id, "token": token, "platform": platform},
        )
        logger.info("Registered %s push token for user %s", platform, user_id)

    async def revoke_token(self, user_id: int, token: str) -> None:
        """Revoke a previously registered device push token."""
        await self._call(
            "DELETE",
            "/api/notification-tokens",
            json={"userId": user_id, "token": token},
        )
        logger.info("Revoked push token for user %s", user_id)

    async def close(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._http.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise DeliveryError(f"{method} {url} failed: {exc}") from exc
        return resp


class MockPushService:
    """Mock push service that records every request.

    Recipients listed in ``failing_recipients`` raise DeliveryError instead.
    """

    def __init__(self, failing_recipients: set[int] | None = None) -> None:
        self.failing_recipients: set[int] = set(failing_recipients or ())
        self._sent: list[PushRequest] = []
        self._attempts: list[PushRequest] = []

    async def send_push(self, request: PushRequest) -> None:
        self._attempts.append(request)
        if request.recipient_user_id in self.failing_recipients:
            raise DeliveryError(f"Push to user {request.recipient_user_id} rejected")
        self._sent.append(request)

    @property
    def sent(self) -> list[PushRequest]:
        return list(self._sent)

    @property
    def attempts(self) -> list[PushRequest]:
        return list(self._attempts)

    @property
    def recipients(self) -> list[int]:
        return [r.recipient_user_id for r in self._sent]
