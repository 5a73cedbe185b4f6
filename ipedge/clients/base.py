from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import Any

import httpx

from ipedge.errors import IpNotFoundError, UpstreamServiceError
from ipedge.models.common import GeoRecord


class BaseIPLookupClient(ABC):
    """Abstract base for remote IP geolocation providers.

    `lookup_ip` performs one GET bounded by a short timeout, then hands the
    response to the provider hooks in order: HTTP status, JSON payload errors,
    payload to GeoRecord. Raised errors never carry the looked-up address or
    the provider's response text, since either may echo the address.
    """

    # Status codes that get a specific error; any other status >= 400 is an upstream failure.
    HTTP_ERRORS: dict[int, tuple[type[Exception], str]] = {
        HTTPStatus.NOT_FOUND: (IpNotFoundError, "No geolocation information found for this IP address."),
        HTTPStatus.TOO_MANY_REQUESTS: (UpstreamServiceError, "IP provider rate limit or quota exceeded (HTTP 429)."),
    }

    def __init__(self, base_url: str, timeout_seconds: float = 1.5) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    async def lookup_ip(self, ip: str) -> GeoRecord:
        """Look up geolocation information for an explicit IP address."""
        response = await self._get(self._lookup_url(ip))
        self._handle_http_errors(response)

        data = self._parse_json(response)
        self._handle_provider_error(data)

        return self._normalize_payload(data)

    async def _get(self, url: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                return await client.get(url)
        except httpx.RequestError as exc:
            raise UpstreamServiceError(f"Request to IP provider failed: {type(exc).__name__}") from exc

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map HTTP status codes from the provider to domain-specific errors."""
        status_code = response.status_code
        known = self.HTTP_ERRORS.get(status_code)
        if known is not None:
            error_cls, message = known
            raise error_cls(message)
        if status_code >= HTTPStatus.BAD_REQUEST:
            raise UpstreamServiceError(f"IP provider returned HTTP {int(status_code)}.")

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamServiceError("Failed to decode IP provider response as JSON.") from exc

    @abstractmethod
    def _lookup_url(self, ip: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        """Raise an IpProviderError if the payload reports a failure."""
        raise NotImplementedError

    @abstractmethod
    def _normalize_payload(self, data: dict[str, Any]) -> GeoRecord:
        raise NotImplementedError
