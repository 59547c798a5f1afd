"""
Redirect Rewriting
==================

The gateway never lets a ``Location`` header reach the browser. A browser
that sees a 3xx + Location follows it natively, outside the proxy, and the
*origin's* CORS and cookie rules apply again. Instead the client receives
200 plus:

    tun-Location        absolute redirect target
    tun-Location-Proxy  /proxy?url=<target> to follow the redirect through
                        the gateway

Relative targets are resolved against the origin of the request that
produced the redirect.

Note: an already-absolute target is trusted as-is, whatever its host. This
mirrors what a browser would do with the raw redirect, and means the gateway
will follow redirect chains to arbitrary hosts.
"""

import enum
from typing import Optional
from urllib.parse import quote

from ..models import HeaderList, RewrittenRedirect, get_header
from .headers import is_valid_header_value

PROXY_PATH = "/proxy"

TUN_LOCATION = "tun-Location"
TUN_LOCATION_PROXY = "tun-Location-Proxy"


class LocationKind(enum.Enum):
    PROTOCOL_RELATIVE = "protocol-relative"
    FULL_URL = "full-url"
    ABSOLUTE_PATH = "absolute-path"
    RELATIVE_PATH = "relative-path"


def classify_location(location: str) -> LocationKind:
    if location.startswith("//"):
        return LocationKind.PROTOCOL_RELATIVE
    if location.startswith(("http://", "https://")):
        return LocationKind.FULL_URL
    if location.startswith("/"):
        return LocationKind.ABSOLUTE_PATH
    return LocationKind.RELATIVE_PATH


def resolve_location(location: str, origin: str) -> str:
    """
    Make ``location`` absolute relative to ``origin``.

    Args:
        location: Trimmed Location value
        origin: ``scheme://host[:port]`` of the current request

    Example:
        >>> resolve_location("d/e", "http://example.com")
        'http://example.com/d/e'
    """
    kind = classify_location(location)

    if kind is LocationKind.PROTOCOL_RELATIVE:
        scheme, sep, _ = origin.partition("://")
        return f"{scheme}:{location}" if sep and scheme else location

    if kind is LocationKind.ABSOLUTE_PATH:
        return f"{origin}{location}"

    if kind is LocationKind.RELATIVE_PATH:
        return f"{origin}/{location.lstrip('/')}"

    return location


def build_proxy_url(url: str) -> str:
    """
    Gateway URL that re-enters /proxy with ``url`` as the target.

    ``url`` carries header bytes decoded as latin-1; those original bytes
    are what gets percent-encoded.
    """
    return f"{PROXY_PATH}?url={quote(url.encode('latin-1'), safe='')}"


def rewrite_location(headers: HeaderList, origin: str) -> Optional[RewrittenRedirect]:
    """
    Replace the Location header in ``headers`` (in place) with the tun- pair.

    Does nothing when there is no Location header or it is blank.

    Returns:
        The rewritten redirect, or None when nothing was rewritten
    """
    raw_location = get_header(headers, "location")
    if raw_location is None:
        return None

    location = raw_location.strip()
    if not location:
        return None

    location = resolve_location(location, origin)
    redirect = RewrittenRedirect(location=location, location_proxy=build_proxy_url(location))

    headers[:] = [(name, value) for name, value in headers if name.lower() != "location"]
    if is_valid_header_value(redirect.location):
        headers.append((TUN_LOCATION, redirect.location))
    headers.append((TUN_LOCATION_PROXY, redirect.location_proxy))

    return redirect
