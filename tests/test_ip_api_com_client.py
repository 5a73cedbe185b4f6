from http import HTTPStatus
from typing import Any

import httpx
import pytest

from ipedge.clients.ip_api_com_client import IpApiCom
from ipedge.errors import InvalidIpError, IpNotFoundError, ReservedIpError, UpstreamServiceError
from ipedge.models.common import GeoRecord
from tests.common import FailingAsyncClient, MockResponse, make_fake_async_client


@pytest.mark.asyncio
async def test_lookup_ip_success(monkeypatch: pytest.MonkeyPatch) -> None:
    """Happy path: successful lookup with normalized fields."""
    payload = {
        "status": "success",
        "query": "8.8.8.8",
        "countryCode": "US",
        "regionName": "California",
        "city": "Mountain View",
        "zip": "94043",
        "lat": 37.386,
        "lon": -122.0838,
        "timezone": "America/Los_Angeles",
        "isp": "Google LLC",
        "org": "Google Public DNS",
        "as": "AS15169 Google LLC",
    }
    calls: list[str] = []
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response, calls))

    result = await IpApiCom().lookup_ip("8.8.8.8")

    assert calls[0].startswith("http://ip-api.com/json/8.8.8.8?fields=")
    assert isinstance(result, GeoRecord)
    assert result.country == "US"
    assert result.region == "California"
    assert result.city == "Mountain View"
    assert result.postal_code == "94043"
    assert result.latitude == "37.386"
    assert result.longitude == "-122.0838"
    assert result.timezone == "America/Los_Angeles"
    assert result.asn == 15169
    assert result.isp == "Google LLC"


@pytest.mark.asyncio
async def test_lookup_ip_sparse_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {"status": "success", "query": "198.51.100.42", "countryCode": "DE", "zip": "", "org": "Example AG"}
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    result = await IpApiCom().lookup_ip("198.51.100.42")

    assert result.country == "DE"
    assert result.postal_code is None
    assert result.asn is None
    assert result.isp == "Example AG"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("message", "error"),
    [
        ("invalid query", InvalidIpError),
        ("private range", ReservedIpError),
        ("reserved range", ReservedIpError),
        ("quota exceeded for this key", UpstreamServiceError),
        ("not found", IpNotFoundError),
        ("something odd", UpstreamServiceError),
    ],
)
async def test_lookup_ip_fail_status_messages(
    monkeypatch: pytest.MonkeyPatch,
    message: str,
    error: type[Exception],
) -> None:
    """ip-api.com reports failures via status/message in the JSON payload."""
    payload = {"status": "fail", "message": message, "query": "192.168.0.1"}
    response = MockResponse(status_code=HTTPStatus.OK, payload=payload)

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(error):
        await IpApiCom().lookup_ip("192.168.0.1")


@pytest.mark.asyncio
async def test_lookup_ip_not_found_http_404(monkeypatch: pytest.MonkeyPatch) -> None:
    """HTTP 404 is translated to IpNotFoundError."""
    response = MockResponse(status_code=HTTPStatus.NOT_FOUND, payload={}, text="Not Found")

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(IpNotFoundError):
        await IpApiCom().lookup_ip("203.0.113.10")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code",
    [
        HTTPStatus.BAD_REQUEST,
        HTTPStatus.FORBIDDEN,
        HTTPStatus.TOO_MANY_REQUESTS,
        HTTPStatus.INTERNAL_SERVER_ERROR,
    ],
)
async def test_lookup_ip_http_error_statuses_raise_upstream_service_error(
    monkeypatch: pytest.MonkeyPatch,
    status_code: HTTPStatus,
) -> None:
    response = MockResponse(status_code=status_code, payload={}, text="Some error")

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(UpstreamServiceError):
        await IpApiCom().lookup_ip("8.8.8.8")


@pytest.mark.asyncio
async def test_lookup_ip_network_failure_raises_upstream_service_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Network failures from httpx.AsyncClient are mapped to UpstreamServiceError."""

    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        lambda *args, **kwargs: FailingAsyncClient("http://ip-api.com", *args, **kwargs),
    )

    with pytest.raises(UpstreamServiceError):
        await IpApiCom().lookup_ip("8.8.8.8")


@pytest.mark.asyncio
async def test_lookup_ip_invalid_json_raises_upstream_service_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Non-JSON responses are mapped to UpstreamServiceError via JSON decode failure."""

    class BadJsonResponse(MockResponse):
        def json(self) -> dict[str, Any]:
            raise ValueError("not json")

    response = BadJsonResponse(status_code=HTTPStatus.OK, payload={})

    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(response))

    with pytest.raises(UpstreamServiceError):
        await IpApiCom().lookup_ip("8.8.8.8")
