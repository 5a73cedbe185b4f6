"""Service configuration loaded from the environment (or a local `.env` file)."""

from functools import lru_cache
from ipaddress import IPv4Network, IPv6Network, ip_network
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ipedge.models.common import Provider


class Settings(BaseSettings):
    """Edge IP service settings.

    Environment Variables:
        DATASET_PATH: JSON dataset snapshot (geo records, VPN exits, hosting ASNs).
        MAXMIND_CITY_DB / MAXMIND_ASN_DB: optional MaxMind databases used instead
            of the JSON geo records; DATASET_PATH then only supplies VPN/hosting lists.
        DATASET_REFRESH_SECONDS: reload interval for changed dataset files, 0 disables.
        GEO_PROVIDER: "local" (default), "ipapi.co" or "ip-api.com".
        TRUSTED_PROXIES: comma-separated CIDRs of edge/proxy hops whose forwarding
            headers are believed.
        CLIENT_IP_HEADER: single-value header set by the edge (e.g. cf-connecting-ip).
    """

    DATASET_PATH: Path | None = None
    MAXMIND_CITY_DB: Path | None = None
    MAXMIND_ASN_DB: Path | None = None
    DATASET_REFRESH_SECONDS: float = Field(default=0.0, ge=0)

    GEO_PROVIDER: Provider = Provider.local
    GEO_PROVIDER_TIMEOUT_SECONDS: float = Field(default=1.5, gt=0)

    TRUSTED_PROXIES: str = "127.0.0.1/32,::1/128"
    CLIENT_IP_HEADER: str | None = None
    MAX_FORWARDED_HOPS: int = Field(default=16, ge=1)
    REQUIRE_PUBLIC_ADDRESS: bool = False

    TRACE_HEADER: str = "cf-ray"
    COLO_HEADER: str | None = None

    HOST: str = "127.0.0.1"
    PORT: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("TRUSTED_PROXIES")
    @classmethod
    def _validate_trusted_proxies(cls, value: str) -> str:
        for item in value.split(","):
            if item.strip():
                try:
                    ip_network(item.strip(), strict=False)
                except ValueError as exc:
                    raise ValueError(f"TRUSTED_PROXIES entry is not a valid network: {item.strip()!r}") from exc
        return value

    @field_validator("CLIENT_IP_HEADER", "COLO_HEADER", mode="before")
    @classmethod
    def _blank_header_to_none(cls, value: str | None) -> str | None:
        if value is None or not str(value).strip():
            return None
        return str(value).strip().lower()

    @field_validator("TRACE_HEADER")
    @classmethod
    def _lower_trace_header(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def trusted_proxy_networks(self) -> list[IPv4Network | IPv6Network]:
        return [ip_network(item.strip(), strict=False) for item in self.TRUSTED_PROXIES.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
