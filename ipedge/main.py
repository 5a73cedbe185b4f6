import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import PlainTextResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from ipedge.classifier import ConnectionClassifier
from ipedge.clients.factory import IpLookupProviderFactory
from ipedge.composer import (
    compose_api,
    compose_connection_type,
    compose_headers,
    compose_plain,
    compose_user_agent,
    decode_headers,
    edge_metadata,
)
from ipedge.config import Settings, get_settings
from ipedge.datasets.store import DatasetStore, refresh_periodically
from ipedge.errors import AppError, NoGeoData
from ipedge.exception_handlers import (
    app_error_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from ipedge.geolocation import GeoLocator
from ipedge.logger import logger
from ipedge.models.common import RequestContext
from ipedge.models.response_models import (
    ApiResponse,
    ConnectionTypeResponse,
    ErrorResponse,
    HeadersResponse,
    HealthResponse,
)
from ipedge.resolver import AddressResolver


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the dataset snapshot and start the optional refresher."""
    settings = get_settings()
    store = DatasetStore.from_settings(settings)
    app.state.dataset_store = store

    refresher: asyncio.Task | None = None
    if settings.DATASET_REFRESH_SECONDS > 0:
        refresher = asyncio.create_task(refresh_periodically(store, settings.DATASET_REFRESH_SECONDS))
    try:
        yield
    finally:
        if refresher is not None:
            refresher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresher
        store.close()


app = FastAPI(
    title="Edge IP Service",
    version="0.1.0",
    description="Reports the caller's IP address, its geolocation and connection type.",
    lifespan=lifespan,
)
logger.info("Started Edge IP Service")

app.add_exception_handler(AppError, app_error_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Client address could not be determined"},
}

classifier = ConnectionClassifier()


@app.middleware("http")
async def no_store(request: Request, call_next):
    """Responses describe one client; shared caches must not keep them."""
    response = await call_next(request)
    response.headers["Cache-Control"] = "no-store"
    return response


def get_dataset_store(request: Request) -> DatasetStore:
    """Dependency to provide the process-wide dataset store."""
    return request.app.state.dataset_store


def get_address_resolver(settings: Annotated[Settings, Depends(get_settings)]) -> AddressResolver:
    return AddressResolver(
        trusted_proxies=settings.trusted_proxy_networks,
        client_ip_header=settings.CLIENT_IP_HEADER,
        max_hops=settings.MAX_FORWARDED_HOPS,
        require_public=settings.REQUIRE_PUBLIC_ADDRESS,
    )


def get_geo_locator(settings: Annotated[Settings, Depends(get_settings)]) -> GeoLocator:
    """Dependency to provide a GeoLocator for the configured provider."""
    factory = IpLookupProviderFactory(timeout_seconds=settings.GEO_PROVIDER_TIMEOUT_SECONDS)
    return GeoLocator(factory(settings.GEO_PROVIDER))


def get_classifier() -> ConnectionClassifier:
    return classifier


def get_request_context(
    request: Request,
    resolver: Annotated[AddressResolver, Depends(get_address_resolver)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RequestContext:
    """Resolve the client address and bundle it with the request's headers.

    The context lives only for this request; nothing in it is stored or logged.
    """
    headers = decode_headers(request.headers.raw)
    peer = request.client.host if request.client else None
    return RequestContext(
        address=resolver.resolve(peer, headers),
        headers=headers,
        edge=edge_metadata(headers, settings.TRACE_HEADER, settings.COLO_HEADER),
    )


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health(store: Annotated[DatasetStore, Depends(get_dataset_store)]) -> HealthResponse:
    """Basic health check endpoint, reporting the active dataset version."""
    return HealthResponse(status="ok", dataset=store.current().version)


@app.get(
    "/plain",
    response_class=PlainTextResponse,
    tags=["ip"],
    summary="The caller's IP address as plain text.",
    responses=_ERROR_RESPONSES,
)
async def plain(context: Annotated[RequestContext, Depends(get_request_context)]) -> PlainTextResponse:
    return PlainTextResponse(compose_plain(context))


@app.get(
    "/api",
    response_model=ApiResponse,
    tags=["ip"],
    summary="The caller's IP address with location, network and edge details.",
    responses={
        **_ERROR_RESPONSES,
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Address is in an unallocated range"},
    },
)
async def api(
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[DatasetStore, Depends(get_dataset_store)],
    locator: Annotated[GeoLocator, Depends(get_geo_locator)],
) -> ApiResponse:
    snapshot = store.current()
    record = await locator.locate(context.address, snapshot)
    return compose_api(context, record)


@app.get(
    "/api/connection-type",
    response_model=ConnectionTypeResponse,
    tags=["ip"],
    summary="Whether the caller connects from a residential, datacenter or VPN network.",
    responses=_ERROR_RESPONSES,
)
async def connection_type(
    context: Annotated[RequestContext, Depends(get_request_context)],
    store: Annotated[DatasetStore, Depends(get_dataset_store)],
    locator: Annotated[GeoLocator, Depends(get_geo_locator)],
    connection_classifier: Annotated[ConnectionClassifier, Depends(get_classifier)],
) -> ConnectionTypeResponse:
    # One snapshot for both steps, so a concurrent refresh cannot mix versions.
    snapshot = store.current()
    try:
        record = await locator.locate(context.address, snapshot)
    except NoGeoData:
        record = None
    result = connection_classifier.classify(context.address, record, snapshot)
    return compose_connection_type(context, result)


@app.get(
    "/headers",
    response_model=HeadersResponse,
    tags=["echo"],
    summary="The request headers as received.",
)
async def headers(request: Request) -> HeadersResponse:
    return compose_headers(decode_headers(request.headers.raw))


@app.get(
    "/user-agent",
    response_class=PlainTextResponse,
    tags=["echo"],
    summary="The raw User-Agent header.",
)
async def user_agent(request: Request) -> PlainTextResponse:
    return PlainTextResponse(compose_user_agent(decode_headers(request.headers.raw)))


# HEAD mirrors of every GET route, hidden from the OpenAPI schema.
for _route in list(app.routes):
    if isinstance(_route, APIRoute) and "GET" in _route.methods:
        app.add_api_route(
            _route.path,
            _route.endpoint,
            methods=["HEAD"],
            response_model=_route.response_model,
            response_class=_route.response_class,
            include_in_schema=False,
        )
