from ipedge.clients.base import BaseIPLookupClient
from ipedge.datasets.snapshot import DatasetSnapshot
from ipedge.errors import InvalidIpError, IpNotFoundError, NoGeoData, ReservedIpError, UpstreamServiceError
from ipedge.logger import logger
from ipedge.models.common import ClientAddress, GeoRecord


class GeoLocator:
    """Maps a client address to its best-matching GeoRecord.

    With no remote client the snapshot's geo table answers every lookup
    locally. With a remote client configured, provider failures fail closed to
    an all-unknown record instead of failing the request.
    """

    def __init__(self, remote_client: BaseIPLookupClient | None = None) -> None:
        self._remote_client = remote_client

    async def locate(self, address: ClientAddress, snapshot: DatasetSnapshot) -> GeoRecord:
        """Return the GeoRecord for `address`.

        Raises NoGeoData only when the address lies in an explicitly
        unallocated range; missing coverage yields a partial record.
        """
        if self._remote_client is not None:
            return await self._locate_remote(address)

        record = snapshot.geo.lookup(address.ip)
        if record is None:
            return GeoRecord.unknown()
        if record.unallocated:
            raise NoGeoData()
        return record

    async def _locate_remote(self, address: ClientAddress) -> GeoRecord:
        try:
            return await self._remote_client.lookup_ip(str(address))
        except ReservedIpError as exc:
            raise NoGeoData() from exc
        except (InvalidIpError, IpNotFoundError):
            return GeoRecord.unknown()
        except UpstreamServiceError as exc:
            logger.warning(f"Remote geolocation unavailable, answering with unknown location: {exc}")
            return GeoRecord.unknown()
