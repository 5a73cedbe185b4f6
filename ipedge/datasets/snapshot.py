import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator

from ipedge.datasets.geo_tables import BaseGeoTable, MaxMindGeoTable, RecordGeoTable, VpnExitSet
from ipedge.errors import DatasetError
from ipedge.models.common import GeoRecord, VpnExit

# Organisation-name fragments of well-known hosting / cloud providers.
DEFAULT_HOSTING_PATTERNS: tuple[str, ...] = (
    "amazon",
    "aws",
    "google cloud",
    "microsoft",
    "azure",
    "digitalocean",
    "linode",
    "akamai",
    "vultr",
    "ovh",
    "leaseweb",
    "hetzner",
    "tencent",
    "alibaba",
    "oracle",
    "scaleway",
    "contabo",
    "choopa",
    "m247",
    "datacamp",
)


class DatasetFile(BaseModel):
    """On-disk JSON dataset snapshot.

    Example:
        {
          "version": "2026-10-01",
          "records": [{"network": "198.51.100.0/24", "country": "US", "asn": 64500, "isp": "Example"}],
          "vpn_exits": ["203.0.113.0/28", {"network": "192.0.2.7", "provider": "tor"}],
          "hosting_asns": [16509, "AS14061"],
          "hosting_patterns": ["amazon", "digitalocean"]
        }

    `hosting_patterns` falls back to DEFAULT_HOSTING_PATTERNS when omitted.
    """

    version: str = "unversioned"
    records: list[GeoRecord] = []
    vpn_exits: list[VpnExit] = []
    hosting_asns: list[int] = []
    hosting_patterns: list[str] | None = None

    @field_validator("records")
    @classmethod
    def _records_need_network(cls, value: list[GeoRecord]) -> list[GeoRecord]:
        for index, record in enumerate(value):
            if record.network is None:
                raise ValueError(f"record {index} has no network")
        return value

    @field_validator("vpn_exits", mode="before")
    @classmethod
    def _bare_exit_entries(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"network": item} if isinstance(item, str) else item for item in value]
        return value

    @field_validator("hosting_asns", mode="before")
    @classmethod
    def _coerce_asns(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item).strip().upper().removeprefix("AS") if isinstance(item, str) else item for item in value]
        return value


def compile_hosting_pattern(patterns: list[str] | tuple[str, ...] | None) -> re.Pattern[str] | None:
    """Join literal organisation-name fragments into one case-insensitive, whole-word regex."""
    fragments = [re.escape(p.strip()) for p in (patterns or ()) if p.strip()]
    if not fragments:
        return None
    return re.compile(r"\b(?:" + "|".join(fragments) + r")\b", re.IGNORECASE)


@dataclass(frozen=True)
class DatasetSnapshot:
    """Immutable, process-wide dataset bundle shared by all in-flight requests."""

    version: str
    geo: BaseGeoTable
    vpn_exits: VpnExitSet
    hosting_asns: frozenset[int] = frozenset()
    hosting_pattern: re.Pattern[str] | None = None
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def empty(cls) -> "DatasetSnapshot":
        return cls(
            version="empty",
            geo=RecordGeoTable([]),
            vpn_exits=VpnExitSet(),
            hosting_pattern=compile_hosting_pattern(DEFAULT_HOSTING_PATTERNS),
        )

    @classmethod
    def from_dataset(cls, dataset: DatasetFile, geo: BaseGeoTable | None = None) -> "DatasetSnapshot":
        patterns = DEFAULT_HOSTING_PATTERNS if dataset.hosting_patterns is None else dataset.hosting_patterns
        return cls(
            version=dataset.version,
            geo=geo if geo is not None else RecordGeoTable(dataset.records),
            vpn_exits=VpnExitSet(dataset.vpn_exits),
            hosting_asns=frozenset(dataset.hosting_asns),
            hosting_pattern=compile_hosting_pattern(patterns),
        )

    def is_hosting(self, record: GeoRecord) -> bool:
        if record.asn is not None and record.asn in self.hosting_asns:
            return True
        if record.isp and self.hosting_pattern is not None:
            return self.hosting_pattern.search(record.isp) is not None
        return False


def read_dataset_file(path: Path) -> DatasetFile:
    try:
        return DatasetFile.model_validate_json(Path(path).read_bytes())
    except OSError as exc:
        raise DatasetError(f"Cannot read dataset file {path}: {exc}") from exc
    except ValidationError as exc:
        raise DatasetError(f"Malformed dataset file {path}: {exc.error_count()} validation error(s)") from exc


def load_snapshot(path: Path) -> DatasetSnapshot:
    """Build a snapshot from a JSON dataset file."""
    return DatasetSnapshot.from_dataset(read_dataset_file(path))


def load_maxmind_snapshot(
    city_db: Path,
    asn_db: Path | None = None,
    extras_path: Path | None = None,
) -> DatasetSnapshot:
    """Build a snapshot over MaxMind databases.

    The optional JSON file at `extras_path` supplies the VPN exits and hosting
    lists; its `records` are ignored in favour of the MaxMind data.
    """
    dataset = read_dataset_file(extras_path) if extras_path is not None else DatasetFile(version="maxmind")
    try:
        geo = MaxMindGeoTable.open(str(city_db), str(asn_db) if asn_db else None)
    except (OSError, ValueError, RuntimeError) as exc:
        raise DatasetError(f"Cannot open MaxMind database: {exc}") from exc
    return DatasetSnapshot.from_dataset(dataset, geo=geo)
