from fastapi import status


class AppError(Exception):
    """Base application error for the edge IP service.

    Subclasses carry the HTTP status and the machine-readable code used when the
    error reaches a client. Messages must never contain the client's address.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred while processing the request."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class AddressUnresolvable(AppError):
    """Raised when no trustworthy client address can be derived from the request."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "address_unresolvable"
    default_message = "The client address could not be determined."


class NoGeoData(AppError):
    """Raised when the address falls in an explicitly unallocated range."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "no_geo_data"
    default_message = "No geolocation data exists for this address."


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "The requested path does not exist."


class MethodNotAllowed(AppError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    code = "method_not_allowed"
    default_message = "Only GET requests are supported."


class DatasetError(AppError):
    """Raised when a dataset snapshot cannot be loaded or is malformed."""


class IpProviderError(AppError):
    """Base error for remote IP geolocation provider failures."""


class InvalidIpError(IpProviderError):
    """Raised when the provider rejects the address as syntactically invalid."""


class ReservedIpError(IpProviderError):
    """Raised when the provider reports the address as reserved/private (e.g. 127.0.0.1, 192.168.x.x)."""


class IpNotFoundError(IpProviderError):
    """Raised when the provider has no geolocation information for the address."""


class UpstreamServiceError(IpProviderError):
    """Raised when the remote provider fails or times out."""
