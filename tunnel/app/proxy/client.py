"""Outbound HTTP client used to reach origin servers."""

import logging
from typing import Optional

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)


def build_outbound_proxy(http_proxy: str) -> Optional[httpx.Proxy]:
    """
    Parse the configured outbound proxy.

    An empty value means no explicit proxy. An invalid value is logged and
    ignored, leaving httpx's environment defaults (HTTP_PROXY etc.) in place.
    """
    if not http_proxy.strip():
        return None

    try:
        return httpx.Proxy(http_proxy.strip())
    except (httpx.InvalidURL, ValueError) as e:
        logger.warning(f"Invalid http_proxy, falling back to default proxy settings: {e}")
        return None


def create_upstream_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the shared client for forwarded calls.

    Redirects are never followed: they are rewritten for the browser instead.

    Args:
        settings: Gateway settings (timeout, TLS verification, proxy)
        transport: Optional transport override (tests use httpx.MockTransport)
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout_seconds),
        follow_redirects=False,
        verify=not settings.insecure_skip_verify,
        proxy=build_outbound_proxy(settings.http_proxy),
        transport=transport,
    )
