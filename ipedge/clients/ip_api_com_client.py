from typing import Any

from ipedge.clients.base import BaseIPLookupClient
from ipedge.errors import InvalidIpError, IpNotFoundError, ReservedIpError, UpstreamServiceError
from ipedge.models.common import GeoRecord

FIELDS = "status,message,countryCode,regionName,city,zip,lat,lon,timezone,isp,org,as,query"

# Substrings of ip-api.com's `message` on `"status": "fail"`, checked in order.
_FAIL_MESSAGES: tuple[tuple[tuple[str, ...], type[Exception], str], ...] = (
    (("invalid",), InvalidIpError, "IP provider rejected the address as invalid."),
    (("private range", "reserved range"), ReservedIpError, "IP provider reported a reserved address."),
    (("quota", "limit"), UpstreamServiceError, "IP provider rate limit or quota exceeded."),
    (("not found",), IpNotFoundError, "No geolocation information found for this IP address."),
)


class IpApiCom(BaseIPLookupClient):
    """Client for the http://ip-api.com JSON API."""

    def __init__(self, base_url: str = "http://ip-api.com", timeout_seconds: float = 1.5) -> None:
        super().__init__(base_url, timeout_seconds)

    def _lookup_url(self, ip: str) -> str:
        return f"{self._base_url}/json/{ip}?fields={FIELDS}"

    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        if str(data.get("status") or "").lower() == "success":
            return

        message = str(data.get("message") or "").lower()
        for needles, error_cls, error_message in _FAIL_MESSAGES:
            if any(needle in message for needle in needles):
                raise error_cls(error_message)

        raise UpstreamServiceError("IP provider reported an error.")

    def _normalize_payload(self, data: dict[str, Any]) -> GeoRecord:
        # "as" looks like "AS15169 Google LLC".
        as_field = str(data.get("as") or "").strip()

        return GeoRecord(
            country=data.get("countryCode"),
            region=data.get("regionName"),
            city=data.get("city"),
            postal_code=data.get("zip"),
            timezone=data.get("timezone"),
            latitude=data.get("lat"),
            longitude=data.get("lon"),
            asn=as_field.split(" ", 1)[0] if as_field else None,
            isp=data.get("isp") or data.get("org"),
        )
