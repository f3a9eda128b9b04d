"""Backend REST service client for user profiles and group lists."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from aegis_notify.core.config import BackendConfig
from aegis_notify.core.errors import BackendError
from aegis_notify.core.types import Group, Principal, UserProfile

logger = logging.getLogger(__name__)


@runtime_checkable
class BackendService(Protocol):
    """Protocol for the user/group backend."""

    async def fetch_user_profile(self, user_id: int) -> UserProfile: ...

    async def fetch_user_groups(self, principal: Principal) -> list[Group]: ...


class HttpBackendClient:
    """Talks to the backend over HTTP.

    ``fetch_user_groups`` sends the principal's own access token when it has
    one, since the backend resolves "my groups" from the caller's identity.
    """

    def __init__(self, config: BackendConfig) -> None:
        self.config = config
        headers: dict[str, str] = {}
        if config.api_token:
            headers["Authorization"] = f"Bearer {config.api_token}"
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers=headers,
        )

    # -- public API ----------------------------------------------------------

    async def fetch_user_profile(self, user_id: int) -> UserProfile:
        data = await self._get_json(f"/user/{user_id}")
        return UserProfile.model_validate(data)

    async def fetch_user_groups(self, principal: Principal) -> list[Group]:
        headers: dict[str, str] = {}
        if principal.access_token:
            headers["Authorization"] = f"Bearer {principal.access_token}"
        data = await self._get_json("/group/my-groups", headers=headers)
        return [Group.model_validate(item) for item in data]

    async def close(self) -> None:
        await self._http.aclose()

    # -- internal retry logic ------------------------------------------------

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        resp = await self._request_with_retry("GET", url, **kwargs)
        if resp.is_error:
            raise BackendError(f"GET {url} returned {resp.status_code}")
        return resp.json()

    async def _request_with_retry(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying 5xx answers and transport errors.

        The wait before retry ``n`` is ``retry_backoff_seconds * 2**n``. A
        request error on the final attempt raises BackendError.
        """
        retries = max(0, self.config.max_retries)
        for attempt in range(retries):
            try:
                resp = await self._http.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                reason = str(exc)
            else:
                if resp.status_code < 500:
                    return resp
                reason = f"status {resp.status_code}"
            delay = self.config.retry_backoff_seconds * (2 ** attempt)
            logger.warning(
                "Backend %s %s failed (%s), retry %d/%d in %.2fs",
                method, url, reason, attempt + 1, retries, delay,
            )
            await asyncio.sleep(delay)

        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise BackendError(f"{method} {url} failed: {exc}") from exc
