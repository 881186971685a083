"""Thin httpx wrapper shared by the buoy, weather and tide adapters."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from surf_report.core.cancel import CancelToken
from surf_report.core.config import settings
from surf_report.core.errors import UpstreamFetchError

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Issue GET requests with an explicit timeout and map failures to UpstreamFetchError."""

    def __init__(
        self,
        provider: str,
        client: httpx.Client | None = None,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.provider = provider
        self.timeout = timeout or settings.upstream_timeout_seconds
        self.headers = {"User-Agent": settings.http_user_agent, **(headers or {})}
        self._owns_client = client is None
        self._client = client or httpx.Client(headers=self.headers)

    def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        cancel: CancelToken | None = None,
    ) -> httpx.Response:
        timeout = self.timeout
        if cancel is not None:
            cancel.raise_if_cancelled()
            timeout = cancel.clamp_timeout(timeout)
        try:
            logger.debug("Fetching %s data from %s", self.provider, url)
            response = self._client.get(url, params=params, headers=self.headers, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamFetchError(
                self.provider,
                f"HTTP {exc.response.status_code} from {url}: {exc.response.text[:200]}",
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(self.provider, f"request to {url} failed: {exc}") from exc
        return response

    def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        cancel: CancelToken | None = None,
    ) -> Any:
        response = self.get(url, params=params, cancel=cancel)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFetchError(self.provider, f"invalid JSON from {url}") from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = ["UpstreamClient"]
