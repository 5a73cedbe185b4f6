"""Longest-prefix-match table over CIDR networks.

Entries are grouped by (IP version, prefix length) into plain dicts keyed by the
integer network address. A lookup masks the address once per prefix length that
actually occurs in the table, longest first, so its cost depends on the address
width (at most 33 probes for IPv4, 129 for IPv6) and not on the number of entries.
"""

from collections.abc import Callable, Iterable
from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network
from typing import Generic, TypeVar

T = TypeVar("T")

Network = IPv4Network | IPv6Network
Address = IPv4Address | IPv6Address

_MAX_PREFIX = {4: 32, 6: 128}


def _keep_latest(existing: T, candidate: T) -> T:
    return candidate


class PrefixTable(Generic[T]):
    """Immutable mapping from networks to values with longest-prefix lookup."""

    def __init__(
        self,
        entries: Iterable[tuple[Network, T]] = (),
        prefer: Callable[[T, T], T] = _keep_latest,
    ) -> None:
        tables: dict[tuple[int, int], dict[int, T]] = {}
        for network, value in entries:
            bucket = tables.setdefault((network.version, network.prefixlen), {})
            key = int(network.network_address)
            bucket[key] = prefer(bucket[key], value) if key in bucket else value

        self._tables = tables
        self._lengths: dict[int, tuple[int, ...]] = {
            version: tuple(
                sorted((length for (v, length) in tables if v == version), reverse=True),
            )
            for version in (4, 6)
        }
        self._size = sum(len(bucket) for bucket in tables.values())

    def longest_match(self, address: Address) -> T | None:
        """Return the value of the most specific network containing `address`."""
        version = address.version
        width = _MAX_PREFIX[version]
        value = int(address)
        for length in self._lengths[version]:
            shift = width - length
            hit = self._tables[(version, length)].get((value >> shift) << shift)
            if hit is not None:
                return hit
        return None

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, (IPv4Address, IPv6Address)):
            return False
        return self.longest_match(address) is not None

    def __len__(self) -> int:
        return self._size
