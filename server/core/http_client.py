import logging

import httpx

from core.logging_setup import log_step

logger = logging.getLogger(__name__)

# Calendar APIs and OAuth endpoints. Provider calls are not retried.
PROVIDER_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
PROVIDER_LIMITS = httpx.Limits(max_connections=100, max_keepalive_connections=20)

_shared_http_client: httpx.AsyncClient | None = None


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=PROVIDER_TIMEOUT,
        limits=PROVIDER_LIMITS,
        headers={"Accept": "application/json"},
    )


def get_http_client() -> httpx.AsyncClient:
    """The process-wide client for Google, Microsoft Graph and OAuth calls."""
    global _shared_http_client
    if _shared_http_client is None or _shared_http_client.is_closed:
        _shared_http_client = build_http_client()
    return _shared_http_client


async def init_http_client():
    get_http_client()
    with log_step("HTTP"):
        logger.debug("Shared provider HTTP client ready.")


async def close_http_client():
    global _shared_http_client
    if _shared_http_client is not None:
        await _shared_http_client.aclose()
        _shared_http_client = None
        with log_step("HTTP"):
            logger.debug("Shared provider HTTP client closed.")
