import uvicorn

from ipedge.config import get_settings
from ipedge.logger import log_config


def main() -> None:
    """Run the FastAPI application with uvicorn.

    Proxy-header rewriting is left off: the service resolves the client address
    itself against its own trusted-proxy list.
    """
    settings = get_settings()
    uvicorn.run(
        "ipedge.main:app",
        host=settings.HOST,
        port=settings.PORT,
        proxy_headers=False,
        server_header=False,
        log_config=log_config,
    )


if __name__ == "__main__":
    main()
