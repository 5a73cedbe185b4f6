from http import HTTPStatus
from typing import Any

from ipedge.clients.base import BaseIPLookupClient
from ipedge.errors import InvalidIpError, IpNotFoundError, ReservedIpError, UpstreamServiceError
from ipedge.models.common import GeoRecord


class IpApiCo(BaseIPLookupClient):
    """Client for the https://ipapi.co/ IP geolocation API.

    Error semantics follow https://ipapi.co/api/#specific-location-field6: a
    payload can carry an "error" flag even with HTTP 200.
    """

    HTTP_ERRORS = {
        **BaseIPLookupClient.HTTP_ERRORS,
        HTTPStatus.FORBIDDEN: (UpstreamServiceError, "Authentication with IP provider failed (HTTP 403)."),
        HTTPStatus.METHOD_NOT_ALLOWED: (UpstreamServiceError, "IP provider refused the request method (HTTP 405)."),
    }

    def __init__(self, base_url: str = "https://ipapi.co", timeout_seconds: float = 1.5) -> None:
        super().__init__(base_url, timeout_seconds)

    def _lookup_url(self, ip: str) -> str:
        return f"{self._base_url}/{ip}/json/"

    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        """Payload errors look like:

            { "error": true, "reason": "Invalid IP Address", "ip": "..." }
            { "error": true, "reason": "Reserved IP Address", "ip": "127.0.0.1", "reserved": true }
            { "error": true, "reason": "RateLimited", "message": "..." }
        """
        if not data.get("error"):
            return

        reason = str(data.get("reason") or data.get("message") or "").lower()

        if "invalid" in reason:
            raise InvalidIpError("IP provider rejected the address as invalid.")
        if "reserved" in reason or data.get("reserved") is True:
            raise ReservedIpError("IP provider reported a reserved address.")
        if "ratelimited" in reason or "quota" in reason:
            raise UpstreamServiceError("IP provider rate limit or quota exceeded.")
        if "not found" in reason:
            raise IpNotFoundError("No geolocation information found for this IP address.")

        raise UpstreamServiceError("IP provider reported an error.")

    def _normalize_payload(self, data: dict[str, Any]) -> GeoRecord:
        """Latitude/longitude and "AS15169"-style ASNs are coerced by GeoRecord."""
        return GeoRecord(
            network=data.get("network"),
            country=data.get("country_code") or data.get("country"),
            region=data.get("region"),
            city=data.get("city"),
            postal_code=data.get("postal"),
            timezone=data.get("timezone"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            asn=data.get("asn"),
            isp=data.get("org"),
        )
