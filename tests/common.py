from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import httpx

from ipedge.datasets.snapshot import DatasetFile, DatasetSnapshot


class MockResponse:
    def __init__(self, status_code: int, payload: dict[str, Any] | None = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self) -> dict[str, Any]:
        return self._payload


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient."""

    def __init__(self, response: MockResponse, calls: list[str] | None = None) -> None:
        self._response = response
        self._calls = calls if calls is not None else []

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str) -> MockResponse:
        self._calls.append(url)
        return self._response


class FailingAsyncClient:
    """Async client that raises a transport error on enter to simulate network failure.

    The target URL is provided at construction time, so tests for different providers
    can reuse this implementation with different base URLs.
    """

    def __init__(self, url: str, *args: Any, exc_type: type[httpx.RequestError] = httpx.ConnectError, **kwargs: Any) -> None:
        self._url = url
        self._exc_type = exc_type

    async def __aenter__(self) -> "FailingAsyncClient":
        request = httpx.Request("GET", self._url)
        raise self._exc_type("Network failure", request=request)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str) -> MockResponse:
        return MockResponse(status_code=HTTPStatus.OK, payload={})


def make_fake_async_client(response: MockResponse, calls: list[str] | None = None) -> Callable[..., MockAsyncClient]:
    """Factory for a fake httpx.AsyncClient returning a fixed response.

    This avoids repeating the same stub definition in every test.
    """

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        return MockAsyncClient(response, calls)

    return _fake_client


def make_snapshot(
    records: list[dict[str, Any]] | None = None,
    vpn_exits: list[Any] | None = None,
    hosting_asns: list[int] | None = None,
    hosting_patterns: list[str] | None = None,
    version: str = "test",
) -> DatasetSnapshot:
    """Build an in-memory snapshot the same way a dataset file would be loaded."""
    dataset = DatasetFile.model_validate(
        {
            "version": version,
            "records": records or [],
            "vpn_exits": vpn_exits or [],
            "hosting_asns": hosting_asns or [],
            "hosting_patterns": hosting_patterns,
        }
    )
    return DatasetSnapshot.from_dataset(dataset)


EXAMPLE_RECORDS: list[dict[str, Any]] = [
    {
        "network": "198.51.100.0/24",
        "country": "US",
        "region": "California",
        "city": "San Jose",
        "postal_code": "95141",
        "timezone": "America/Los_Angeles",
        "latitude": "37.33939",
        "longitude": "-121.89496",
        "asn": 64500,
        "isp": "Example Broadband",
    },
    {
        "network": "192.0.2.0/24",
        "country": "DE",
        "city": "Frankfurt am Main",
        "timezone": "Europe/Berlin",
        "latitude": "50.1109",
        "longitude": "8.6821",
        "asn": 64511,
        "isp": "Example Cloud Hosting",
    },
    {
        "network": "2001:db8::/32",
        "country": "NL",
        "city": "Amsterdam",
        "timezone": "Europe/Amsterdam",
        "latitude": "52.37403",
        "longitude": "4.88969",
        "asn": 64501,
        "isp": "Example Fibre",
    },
    {"network": "203.0.113.0/24", "unallocated": True},
]

EXAMPLE_VPN_EXITS: list[Any] = [
    {"network": "192.0.2.200/29", "provider": "ExampleVPN"},
    "2001:db8:dead::/48",
]

EXAMPLE_HOSTING_ASNS = [64511]


def example_snapshot(version: str = "test") -> DatasetSnapshot:
    return make_snapshot(
        records=EXAMPLE_RECORDS,
        vpn_exits=EXAMPLE_VPN_EXITS,
        hosting_asns=EXAMPLE_HOSTING_ASNS,
        version=version,
    )
