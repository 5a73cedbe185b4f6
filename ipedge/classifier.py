"""Connection classification as an ordered list of rules.

Precedence is the order of DEFAULT_RULES: the first rule that matches decides.
A known VPN exit is `vpn` even when it sits in a hosting provider's network.
"""

from collections.abc import Callable, Sequence
from typing import NamedTuple

from ipedge.datasets.snapshot import DatasetSnapshot
from ipedge.models.common import ClassificationResult, ClientAddress, ConnectionType, GeoRecord

Matcher = Callable[[ClientAddress, GeoRecord | None, DatasetSnapshot], ClassificationResult | None]


class Rule(NamedTuple):
    connection_type: ConnectionType
    matcher: Matcher


def match_vpn_exit(
    address: ClientAddress, record: GeoRecord | None, snapshot: DatasetSnapshot
) -> ClassificationResult | None:
    # Membership is tested by address alone, so it runs even without geo data.
    exit_ = snapshot.vpn_exits.match(address.ip)
    if exit_ is None:
        return None
    return ClassificationResult(
        connection_type=ConnectionType.vpn,
        provider=exit_.provider or (record.isp if record else None),
        asn=record.asn if record else None,
    )


def match_hosting_network(
    address: ClientAddress, record: GeoRecord | None, snapshot: DatasetSnapshot
) -> ClassificationResult | None:
    if record is None or not snapshot.is_hosting(record):
        return None
    return ClassificationResult(connection_type=ConnectionType.datacenter, provider=record.isp, asn=record.asn)


def match_known_network_owner(
    address: ClientAddress, record: GeoRecord | None, snapshot: DatasetSnapshot
) -> ClassificationResult | None:
    if record is None or (record.asn is None and record.isp is None):
        return None
    return ClassificationResult(connection_type=ConnectionType.residential, provider=record.isp, asn=record.asn)


DEFAULT_RULES: tuple[Rule, ...] = (
    Rule(ConnectionType.vpn, match_vpn_exit),
    Rule(ConnectionType.datacenter, match_hosting_network),
    Rule(ConnectionType.residential, match_known_network_owner),
)


class ConnectionClassifier:
    """Classify a connection as residential, datacenter, vpn or unknown."""

    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES) -> None:
        self._rules = tuple(rules)

    def classify(
        self,
        address: ClientAddress,
        record: GeoRecord | None,
        snapshot: DatasetSnapshot,
    ) -> ClassificationResult:
        """Apply the rules in order; `record` is None when no geo data exists."""
        for rule in self._rules:
            result = rule.matcher(address, record, snapshot)
            if result is not None:
                return result
        return ClassificationResult(
            connection_type=ConnectionType.unknown,
            provider=None,
            asn=record.asn if record else None,
        )
