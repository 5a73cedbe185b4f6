"""Response payloads, one builder per endpoint variant.

Each builder only receives the data its variant promises, so e.g. the headers
echo cannot pick up geolocation fields by accident.
"""

import re
from collections.abc import Iterable, Sequence

from ipedge.models.common import ClassificationResult, EdgeMetadata, GeoRecord, RequestContext
from ipedge.models.response_models import (
    ApiResponse,
    CloudflareModel,
    ConnectionTypeResponse,
    HeadersResponse,
    LocationModel,
    NetworkModel,
)

_COLO_SUFFIX = re.compile(r"-([A-Z]{3})$")


def decode_headers(raw_headers: Iterable[tuple[bytes, bytes]]) -> tuple[tuple[str, str], ...]:
    """Turn ASGI raw headers into (lower-cased name, value) pairs in arrival order."""
    return tuple((name.decode("latin-1").lower(), value.decode("latin-1")) for name, value in raw_headers)


def edge_metadata(
    headers: Sequence[tuple[str, str]],
    trace_header: str = "cf-ray",
    colo_header: str | None = None,
) -> EdgeMetadata:
    """Pick the edge trace id and colo out of the headers set by the edge layer.

    Without an explicit colo header the colo is taken from a Cloudflare-style
    ray id suffix ("8c1f2a3b4c5d6e7f-SJC").
    """
    values = dict(headers)
    ray = values.get(trace_header) or None
    colo = values.get(colo_header) if colo_header else None
    if not colo and ray:
        match = _COLO_SUFFIX.search(ray)
        colo = match.group(1) if match else None
    return EdgeMetadata(colo=colo or None, ray=ray)


def compose_plain(context: RequestContext) -> str:
    return f"{context.address}\n"


def compose_api(context: RequestContext, record: GeoRecord) -> ApiResponse:
    return ApiResponse(
        ip=str(context.address),
        type=context.address.family,
        location=LocationModel(
            country=record.country,
            region=record.region,
            city=record.city,
            postal_code=record.postal_code,
            timezone=record.timezone,
            latitude=record.latitude,
            longitude=record.longitude,
        ),
        network=NetworkModel(asn=record.asn, isp=record.isp),
        cloudflare=CloudflareModel(colo=context.edge.colo, ray=context.edge.ray),
    )


def compose_headers(headers: Sequence[tuple[str, str]]) -> HeadersResponse:
    """Echo headers as received; repeated headers are joined with ", "."""
    echoed: dict[str, str] = {}
    for name, value in headers:
        echoed[name] = f"{echoed[name]}, {value}" if name in echoed else value
    return HeadersResponse(headers=echoed)


def compose_user_agent(headers: Sequence[tuple[str, str]]) -> str:
    for name, value in headers:
        if name == "user-agent":
            return value
    return ""


def compose_connection_type(context: RequestContext, result: ClassificationResult) -> ConnectionTypeResponse:
    return ConnectionTypeResponse(
        ip=str(context.address),
        connection_type=result.connection_type,
        provider=result.provider,
        asn=result.asn,
    )
