"""HTTP client for the remote Pricing Service."""

from __future__ import annotations

import logging

import httpx

from cab_fare_engine.config import settings
from cab_fare_engine.errors import MalformedResponse, PricingServiceError
from cab_fare_engine.retry import async_retry

logger = logging.getLogger(__name__)

_BYPASS_HEADERS = {
    "X-Force-Refresh": "true",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

_PREVIEW_CHARS = 200


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, PricingServiceError):
        return exc.retryable
    return True


class PricingServiceClient:
    """Thin async wrapper around the per-trip-type fare endpoints."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.pricing_base_url
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=_BYPASS_HEADERS,
            timeout=httpx.Timeout(timeout or settings.http_timeout),
            transport=transport,
        )

    async def get_json(self, endpoint: str, params: dict[str, object]) -> dict:
        """Call ``GET endpoint`` and return the decoded JSON object."""
        try:
            return await self._get(endpoint, params)
        except httpx.HTTPError as exc:
            msg = f"Pricing Service request to {endpoint} failed: {exc}"
            raise PricingServiceError(msg) from exc

    # Retry on transient transport errors and 5xx responses
    @async_retry(
        max_retries=settings.http_max_retries,
        base_delay=0.5,
        max_delay=5.0,
        exceptions=(httpx.TransportError, PricingServiceError),
        should_retry=_is_retryable,
    )
    async def _get(self, endpoint: str, params: dict[str, object]) -> dict:
        resp = await self._client.get(endpoint, params=params)
        body = resp.text

        # PHP fatal errors and proxy pages come back as HTML, sometimes with 200.
        if body.lstrip().startswith("<"):
            raise MalformedResponse(
                f"{endpoint} returned an HTML page (HTTP {resp.status_code})",
                body_preview=body[:_PREVIEW_CHARS],
            )
        if resp.status_code >= 400:
            raise PricingServiceError(
                f"{endpoint} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponse(
                f"{endpoint} returned a body that is not JSON",
                body_preview=body[:_PREVIEW_CHARS],
            ) from exc
        if not isinstance(data, dict):
            raise MalformedResponse(
                f"{endpoint} returned JSON {type(data).__name__}, expected object",
                body_preview=body[:_PREVIEW_CHARS],
            )

        logger.debug("%s%s returned status %r", self.base_url, endpoint, data.get("status"))
        return data

    async def close(self) -> None:
        """Shut down the underlying HTTPX client."""
        await self._client.aclose()
