from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_address, ip_network
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Provider(str, Enum):
    """Where geolocation facts come from."""

    local = "local"
    ipapi_co = "ipapi.co"
    ip_api_com = "ip-api.com"


class AddressFamily(str, Enum):
    ipv4 = "IPv4"
    ipv6 = "IPv6"


class ConnectionType(str, Enum):
    residential = "residential"
    datacenter = "datacenter"
    vpn = "vpn"
    unknown = "unknown"


class ClientAddress(BaseModel):
    """A validated client IP address that lives only as long as one request.

    The repr deliberately omits the address itself so that the object can be
    passed around (or end up in a traceback/log line) without leaking it.
    """

    model_config = ConfigDict(frozen=True)

    ip: IPv4Address | IPv6Address

    @classmethod
    def parse(cls, value: str) -> "ClientAddress":
        """Parse an IP literal, unwrapping IPv4-mapped IPv6 addresses.

        Raises ValueError for anything that is not a plain IPv4/IPv6 literal.
        """
        text = str(value).strip()
        try:
            address = ip_address(text)
        except ValueError as exc:
            raise ValueError("not a valid IPv4 or IPv6 address") from exc

        if isinstance(address, IPv6Address):
            if address.scope_id:
                raise ValueError("scoped IPv6 addresses are not accepted")
            if address.ipv4_mapped is not None:
                address = address.ipv4_mapped

        return cls(ip=address)

    @property
    def family(self) -> AddressFamily:
        return AddressFamily.ipv4 if self.ip.version == 4 else AddressFamily.ipv6

    def __str__(self) -> str:
        return str(self.ip)

    def __repr__(self) -> str:
        return f"ClientAddress(family={self.family.value!r})"


def _to_network(value: Any) -> IPv4Network | IPv6Network | None:
    if value is None or isinstance(value, (IPv4Network, IPv6Network)):
        return value
    text = str(value).strip()
    if not text:
        return None
    return ip_network(text, strict=False)


class GeoRecord(BaseModel):
    """Location and network-ownership facts for an address range.

    `None` is the one "unknown" marker for every attribute; blank strings are
    normalized to it so that clients never have to tell "" and null apart.
    Latitude/longitude are decimal strings and are kept exactly as supplied.
    """

    model_config = ConfigDict(frozen=True)

    network: IPv4Network | IPv6Network | None = None
    country: str | None = None
    region: str | None = None
    city: str | None = None
    postal_code: str | None = None
    timezone: str | None = None
    latitude: str | None = None
    longitude: str | None = None
    asn: int | None = None
    isp: str | None = None
    updated: datetime | None = None
    unallocated: bool = False

    @classmethod
    def unknown(cls) -> "GeoRecord":
        """A partial record with every attribute unknown."""
        return cls()

    @field_validator("network", mode="before")
    @classmethod
    def _coerce_network(cls, value: Any) -> IPv4Network | IPv6Network | None:
        return _to_network(value)

    @field_validator("country", "region", "city", "postal_code", "timezone", "isp", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_lat_lon(cls, value: Any) -> str | None:
        """Allow latitude/longitude to be provided as decimal strings, numbers, or null.

        Strings are kept verbatim (after validation) so coordinates round-trip
        without float precision loss. Invalid values degrade to unknown.
        """
        if value is None or isinstance(value, bool):
            return None
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
        if not parsed.is_finite():
            return None
        if isinstance(value, (int, float)):
            return str(Decimal(str(value)))
        return text

    @field_validator("asn", mode="before")
    @classmethod
    def _coerce_asn(cls, value: Any) -> int | None:
        """Accept 15169, "15169" or "AS15169"; anything else is unknown."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if value > 0 else None
        text = str(value).strip().upper()
        if text.startswith("AS"):
            text = text[2:]
        if not text.isdigit():
            return None
        number = int(text)
        return number if number > 0 else None

    @field_validator("updated")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class VpnExit(BaseModel):
    """A known VPN / anonymizing-network exit range."""

    model_config = ConfigDict(frozen=True)

    network: IPv4Network | IPv6Network
    provider: str | None = None

    @field_validator("network", mode="before")
    @classmethod
    def _coerce_network(cls, value: Any) -> IPv4Network | IPv6Network | None:
        return _to_network(value)

    @field_validator("provider", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value).strip() or None


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    connection_type: ConnectionType
    provider: str | None = None
    asn: int | None = None


class EdgeMetadata(BaseModel):
    """Diagnostics passed through from the edge/hosting layer; not tied to the client."""

    model_config = ConfigDict(frozen=True)

    colo: str | None = None
    ray: str | None = None


class RequestContext(BaseModel):
    """Per-request bundle owned by a single request's handling flow."""

    model_config = ConfigDict(frozen=True)

    address: ClientAddress
    headers: tuple[tuple[str, str], ...] = ()
    edge: EdgeMetadata = EdgeMetadata()
