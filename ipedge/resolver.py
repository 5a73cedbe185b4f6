"""Client address resolution behind reverse proxies and edge termination.

Only hops inside the configured trusted networks are allowed to speak for the
client. Forwarding headers arriving from any other peer are ignored entirely.
"""

import re
from collections.abc import Iterable, Sequence
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_network

from ipedge.errors import AddressUnresolvable
from ipedge.models.common import ClientAddress

# Ranges that can only be a client's address on a local network.
PRIVATE_NETWORKS: tuple[IPv4Network | IPv6Network, ...] = tuple(
    ip_network(cidr)
    for cidr in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "100.64.0.0/10",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::/128",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)

_FORWARDED_FOR = re.compile(r'(?:^|;)\s*for\s*=\s*(?:"([^"]*)"|([^;,\s]*))', re.IGNORECASE)


def is_private_address(address: IPv4Address | IPv6Address) -> bool:
    return any(address in network for network in PRIVATE_NETWORKS if network.version == address.version)


def strip_port(token: str) -> str:
    """Remove quoting, IPv6 brackets and a trailing port from a forwarded node."""
    text = token.strip().strip('"')
    if text.startswith("["):
        closing = text.find("]")
        return text[1:closing] if closing != -1 else text
    if text.count(":") == 1:
        host, port = text.split(":", 1)
        if port.isdigit():
            return host
    return text


def parse_x_forwarded_for(values: Iterable[str]) -> list[str]:
    """Flatten one or more X-Forwarded-For header values into ordered hops."""
    hops: list[str] = []
    for value in values:
        hops.extend(strip_port(item) for item in value.split(","))
    return hops


def parse_forwarded(values: Iterable[str]) -> list[str]:
    """Extract the ordered `for=` nodes of RFC 7239 Forwarded header values.

    Elements without a `for` parameter contribute an empty hop, which never
    parses as an address.
    """
    hops: list[str] = []
    for value in values:
        for element in value.split(","):
            match = _FORWARDED_FOR.search(element)
            if match is None:
                hops.append("")
                continue
            hops.append(strip_port(match.group(1) if match.group(1) is not None else match.group(2)))
    return hops


class AddressResolver:
    """Derive the true client address from a peer address and forwarding headers.

    The forwarding chain is walked right to left. Entries appended by trusted
    hops are skipped; the first entry that was not added by trusted
    infrastructure is the client. The chain is bounded by `max_hops`.
    """

    def __init__(
        self,
        trusted_proxies: Sequence[IPv4Network | IPv6Network] = (),
        client_ip_header: str | None = None,
        max_hops: int = 16,
        require_public: bool = False,
    ) -> None:
        self._trusted = tuple(trusted_proxies)
        self._client_ip_header = client_ip_header.lower() if client_ip_header else None
        self._max_hops = max_hops
        self._require_public = require_public

    def is_trusted(self, address: IPv4Address | IPv6Address) -> bool:
        return any(address in network for network in self._trusted if network.version == address.version)

    def resolve(self, peer: str | None, headers: Sequence[tuple[str, str]]) -> ClientAddress:
        """Resolve the client address.

        `headers` are (lower-cased name, value) pairs in arrival order.
        Raises AddressUnresolvable when no trustworthy address can be found.
        """
        peer_address = self._parse(peer, "The transport peer is not an IP address.")

        if not self.is_trusted(peer_address.ip):
            if is_private_address(peer_address.ip):
                raise AddressUnresolvable(
                    "The request arrived from a private address without a trusted proxy in front of it."
                )
            return self._checked(peer_address)

        if self._client_ip_header:
            edge_values = [value for name, value in headers if name == self._client_ip_header]
            if edge_values:
                return self._checked(self._parse(edge_values[-1], "The edge client address header is malformed."))

        chain = self._forwarding_chain(headers)
        if not chain:
            raise AddressUnresolvable("The trusted proxy supplied no forwarding chain.")
        if len(chain) > self._max_hops:
            raise AddressUnresolvable("The forwarding chain is longer than allowed.")

        for hop in reversed(chain):
            hop_address = self._parse(hop, "The forwarding chain contains a malformed address.")
            if not self.is_trusted(hop_address.ip):
                return self._checked(hop_address)

        # Every hop is trusted infrastructure; the originator is the left-most one.
        return self._checked(self._parse(chain[0], "The forwarding chain contains a malformed address."))

    @staticmethod
    def _forwarding_chain(headers: Sequence[tuple[str, str]]) -> list[str]:
        xff = [value for name, value in headers if name == "x-forwarded-for"]
        if xff:
            return parse_x_forwarded_for(xff)
        forwarded = [value for name, value in headers if name == "forwarded"]
        return parse_forwarded(forwarded)

    @staticmethod
    def _parse(value: str | None, message: str) -> ClientAddress:
        if not value:
            raise AddressUnresolvable(message)
        try:
            return ClientAddress.parse(value)
        except ValueError as exc:
            raise AddressUnresolvable(message) from exc

    def _checked(self, address: ClientAddress) -> ClientAddress:
        if self._require_public and not address.ip.is_global:
            raise AddressUnresolvable("The resolved client address is not publicly routable.")
        return address
