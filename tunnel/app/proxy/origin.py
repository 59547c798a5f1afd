"""Origin resolution for target URLs."""

import httpx

from .errors import ClientInputError


def parse_target_url(url: str) -> httpx.URL:
    """
    Parse an absolute target URL.

    Raises:
        ClientInputError: If the URL cannot be parsed or has no scheme/host
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise ClientInputError(f"Invalid url parameter: {e}") from e

    if not parsed.scheme or not parsed.host:
        raise ClientInputError("Invalid url parameter: an absolute URL is required")

    return parsed


def resolve_origin(url: str) -> str:
    """
    Reduce ``url`` to its origin: ``scheme://host[:port]``.

    The path is reset to the root and query, fragment and userinfo are
    dropped; default ports are omitted (httpx normalises them away).

    Example:
        >>> resolve_origin("http://Example.com:80/a/b?x=1")
        'http://example.com'
    """
    parsed = parse_target_url(url)
    # netloc is host[:port] only, never userinfo
    origin = f"{parsed.scheme}://{parsed.netloc.decode('ascii')}/"
    return origin.rstrip("/")
