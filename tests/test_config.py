from ipaddress import ip_network
from pathlib import Path

import pytest
from pydantic import ValidationError

from ipedge.config import Settings
from ipedge.models.common import Provider


def test_defaults_trust_only_loopback() -> None:
    settings = Settings()

    assert settings.trusted_proxy_networks == [ip_network("127.0.0.1/32"), ip_network("::1/128")]
    assert settings.GEO_PROVIDER is Provider.local
    assert settings.CLIENT_IP_HEADER is None
    assert settings.TRACE_HEADER == "cf-ray"


def test_trusted_proxies_are_parsed_leniently() -> None:
    settings = Settings(TRUSTED_PROXIES=" 10.0.0.0/8 , 2001:db8::/32,,173.245.48.1/20 ")

    assert settings.trusted_proxy_networks == [
        ip_network("10.0.0.0/8"),
        ip_network("2001:db8::/32"),
        ip_network("173.245.48.0/20"),
    ]


def test_invalid_trusted_proxy_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(TRUSTED_PROXIES="10.0.0.0/8,not-a-network")


@pytest.mark.parametrize(("value", "expected"), [("CF-Connecting-IP", "cf-connecting-ip"), ("  ", None), ("", None)])
def test_client_ip_header_is_normalised(value: str, expected: str | None) -> None:
    assert Settings(CLIENT_IP_HEADER=value).CLIENT_IP_HEADER == expected


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GEO_PROVIDER", "ip-api.com")
    monkeypatch.setenv("DATASET_PATH", str(tmp_path / "dataset.json"))
    monkeypatch.setenv("DATASET_REFRESH_SECONDS", "30")
    monkeypatch.setenv("TRACE_HEADER", "X-Request-Id")

    settings = Settings()

    assert settings.GEO_PROVIDER is Provider.ip_api_com
    assert settings.DATASET_PATH == tmp_path / "dataset.json"
    assert settings.DATASET_REFRESH_SECONDS == 30
    assert settings.TRACE_HEADER == "x-request-id"


@pytest.mark.parametrize("field", [{"GEO_PROVIDER": "maxmind.example"}, {"DATASET_REFRESH_SECONDS": -1}, {"MAX_FORWARDED_HOPS": 0}])
def test_out_of_range_values_are_rejected(field: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(**field)
