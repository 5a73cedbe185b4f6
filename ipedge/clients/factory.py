from ipedge.clients.base import BaseIPLookupClient
from ipedge.clients.ip_api_co_client import IpApiCo
from ipedge.clients.ip_api_com_client import IpApiCom
from ipedge.models.common import Provider


class IpLookupProviderFactory:
    """Factory for remote IP lookup provider clients.

    Given a Provider enum, returns a concrete client instance, or None for the
    local dataset which needs no client.
    """

    PROVIDERS_MAP: dict[Provider, type[BaseIPLookupClient]] = {
        Provider.ipapi_co: IpApiCo,
        Provider.ip_api_com: IpApiCom,
    }

    def __init__(self, timeout_seconds: float = 1.5) -> None:
        self._timeout_seconds = timeout_seconds

    def __call__(self, provider: Provider) -> BaseIPLookupClient | None:
        client_cls = self.PROVIDERS_MAP.get(provider)
        if client_cls is None:
            return None
        return client_cls(timeout_seconds=self._timeout_seconds)
