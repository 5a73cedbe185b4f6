from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ipedge.models.common import AddressFamily, ConnectionType


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str
    dataset: str


class LocationModel(_CamelModel):
    country: str | None = None
    region: str | None = None
    city: str | None = None
    postal_code: str | None = None
    timezone: str | None = None
    latitude: str | None = None
    longitude: str | None = None


class NetworkModel(_CamelModel):
    asn: int | None = None
    isp: str | None = None


class CloudflareModel(_CamelModel):
    colo: str | None = None
    ray: str | None = None


class ApiResponse(_CamelModel):
    """Full lookup envelope for the caller's own address."""

    ip: str
    type: AddressFamily
    location: LocationModel
    network: NetworkModel
    cloudflare: CloudflareModel


class HeadersResponse(BaseModel):
    headers: dict[str, str]


class ConnectionTypeResponse(_CamelModel):
    ip: str
    connection_type: ConnectionType
    provider: str | None = None
    asn: int | None = None


class ErrorResponse(BaseModel):
    code: str
    message: str
