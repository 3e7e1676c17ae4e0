# audiotour/services/http_client.py
# Shared request plumbing for the external provider clients.

import asyncio
from typing import Any, Dict, Optional

import httpx
import structlog

from audiotour.core.config import Settings
from audiotour.core.errors import ProviderError, ProviderTimeout

logger = structlog.get_logger(__name__)


class ProviderClient:
    """Base for async clients of one external provider.

    Every request opens its own ``httpx.AsyncClient`` and is bounded twice:
    by the httpx timeout and by ``asyncio.wait_for`` so a stalled call is
    cancelled cooperatively. Transport-level failures are translated into
    ``ProviderTimeout``/``ProviderError``; callers decide whether that is fatal.
    """

    provider_name = "provider"

    def __init__(
        self,
        settings: Settings,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    def _default_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        budget = timeout if timeout is not None else self.timeout
        merged_headers = {**self._default_headers(), **(headers or {})}
        try:
            return await asyncio.wait_for(
                self._send(method, url, params=params, json=json, headers=merged_headers, timeout=budget),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            raise ProviderTimeout(self.provider_name, budget)

    async def _send(self, method, url, *, params, json, headers, timeout) -> Any:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=json, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException:
            raise ProviderTimeout(self.provider_name, timeout)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "provider_status_error",
                provider=self.provider_name,
                status_code=e.response.status_code,
                url=str(e.request.url),
            )
            raise ProviderError(
                self.provider_name,
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.provider_name, f"transport error: {e}")
        except ValueError as e:
            # response.json() on a non-JSON body
            raise ProviderError(self.provider_name, f"malformed payload: {e}")

    async def get_json(self, url: str, **kwargs) -> Any:
        return await self._request_json("GET", url, **kwargs)

    async def post_json(self, url: str, **kwargs) -> Any:
        return await self._request_json("POST", url, **kwargs)
