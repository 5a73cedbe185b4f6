import pytest

from ipedge.composer import compose_headers, compose_plain, compose_user_agent, decode_headers, edge_metadata
from ipedge.models.common import ClientAddress, EdgeMetadata, RequestContext


def test_decode_headers_lower_cases_names_and_keeps_order() -> None:
    raw = [(b"Host", b"example.com"), (b"X-Forwarded-For", b"198.51.100.9"), (b"x-forwarded-for", b"10.0.0.1")]
    assert decode_headers(raw) == (
        ("host", "example.com"),
        ("x-forwarded-for", "198.51.100.9"),
        ("x-forwarded-for", "10.0.0.1"),
    )


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ((("cf-ray", "8c1f2a3b4c5d6e7f-SJC"),), EdgeMetadata(colo="SJC", ray="8c1f2a3b4c5d6e7f-SJC")),
        ((("cf-ray", "8c1f2a3b4c5d6e7f"),), EdgeMetadata(colo=None, ray="8c1f2a3b4c5d6e7f")),
        ((), EdgeMetadata(colo=None, ray=None)),
    ],
)
def test_edge_metadata_from_ray(headers: tuple, expected: EdgeMetadata) -> None:
    assert edge_metadata(headers) == expected


def test_explicit_colo_header_wins_over_ray_suffix() -> None:
    headers = (("x-edge-colo", "FRA"), ("x-trace", "abc-SJC"))
    assert edge_metadata(headers, trace_header="x-trace", colo_header="x-edge-colo") == EdgeMetadata(
        colo="FRA", ray="abc-SJC"
    )


def test_compose_plain_is_address_and_newline() -> None:
    context = RequestContext(address=ClientAddress.parse("2001:db8::1"))
    assert compose_plain(context) == "2001:db8::1\n"


def test_compose_headers_joins_repeated_names() -> None:
    response = compose_headers((("accept", "text/html"), ("accept", "application/json"), ("host", "x")))
    assert response.headers == {"accept": "text/html, application/json", "host": "x"}


def test_compose_user_agent_missing_is_empty() -> None:
    assert compose_user_agent((("host", "x"),)) == ""
