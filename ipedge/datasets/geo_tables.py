from abc import ABC, abstractmethod
from ipaddress import IPv4Address, IPv6Address
from typing import Any

import geoip2.database
import geoip2.errors

from ipedge.models.common import GeoRecord, VpnExit
from ipedge.prefix_table import PrefixTable


class BaseGeoTable(ABC):
    """Abstract base for read-only geolocation tables held by a dataset snapshot.

    Implementations return the best-matching GeoRecord for an address, or None
    when nothing in the table covers it.
    """

    @abstractmethod
    def lookup(self, address: IPv4Address | IPv6Address) -> GeoRecord | None:
        raise NotImplementedError

    def close(self) -> None:
        """Release any files or memory maps held by the table."""
        return None


def _prefer_most_recent(existing: GeoRecord, candidate: GeoRecord) -> GeoRecord:
    """Pick between two records for the same network; later entries win ties."""
    if existing.updated is None:
        return candidate
    if candidate.updated is None:
        return existing
    return candidate if candidate.updated >= existing.updated else existing


class RecordGeoTable(BaseGeoTable):
    """Longest-prefix match over GeoRecords loaded from a dataset file."""

    def __init__(self, records: list[GeoRecord]) -> None:
        self._table: PrefixTable[GeoRecord] = PrefixTable(
            ((record.network, record) for record in records if record.network is not None),
            prefer=_prefer_most_recent,
        )

    def lookup(self, address: IPv4Address | IPv6Address) -> GeoRecord | None:
        return self._table.longest_match(address)

    def __len__(self) -> int:
        return len(self._table)


class MaxMindGeoTable(BaseGeoTable):
    """GeoRecords read from MaxMind City (and optionally ASN) databases.

    MaxMind databases already resolve the most specific network internally;
    an address missing from the City database still gets its ASN facts.
    """

    def __init__(self, city_reader: Any, asn_reader: Any | None = None) -> None:
        self._city_reader = city_reader
        self._asn_reader = asn_reader

    @classmethod
    def open(cls, city_db: str, asn_db: str | None = None) -> "MaxMindGeoTable":
        city_reader = geoip2.database.Reader(str(city_db))
        asn_reader = geoip2.database.Reader(str(asn_db)) if asn_db else None
        return cls(city_reader, asn_reader)

    def lookup(self, address: IPv4Address | IPv6Address) -> GeoRecord | None:
        fields: dict[str, Any] = {}
        ip = str(address)

        try:
            city = self._city_reader.city(ip)
        except geoip2.errors.AddressNotFoundError:
            city = None
        if city is not None:
            fields.update(
                network=city.traits.network,
                country=city.country.iso_code,
                region=city.subdivisions.most_specific.name,
                city=city.city.name,
                postal_code=city.postal.code,
                timezone=city.location.time_zone,
                latitude=city.location.latitude,
                longitude=city.location.longitude,
            )

        if self._asn_reader is not None:
            try:
                asn = self._asn_reader.asn(ip)
            except geoip2.errors.AddressNotFoundError:
                asn = None
            if asn is not None:
                fields.update(
                    asn=asn.autonomous_system_number,
                    isp=asn.autonomous_system_organization,
                )
                if fields.get("network") is None:
                    fields["network"] = asn.network

        if not fields:
            return None
        return GeoRecord(**fields)

    def close(self) -> None:
        self._city_reader.close()
        if self._asn_reader is not None:
            self._asn_reader.close()


class VpnExitSet:
    """Known VPN / exit-node ranges with longest-prefix membership tests."""

    def __init__(self, exits: list[VpnExit] | tuple[VpnExit, ...] = ()) -> None:
        self._table: PrefixTable[VpnExit] = PrefixTable((exit_.network, exit_) for exit_ in exits)

    def match(self, address: IPv4Address | IPv6Address) -> VpnExit | None:
        return self._table.longest_match(address)

    def __contains__(self, address: object) -> bool:
        return address in self._table

    def __len__(self) -> int:
        return len(self._table)
