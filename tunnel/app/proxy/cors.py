"""
CORS headers stamped on every /proxy response.

Starlette's CORSMiddleware is not used here: the policy is unconditional
(echo the caller's Origin, allow everything) and must also cover 401/500
responses produced before any forwarding happens.
"""

from typing import Dict, Mapping

from .headers import TUN_SET_COOKIE, TUN_STATUS
from .redirect import TUN_LOCATION, TUN_LOCATION_PROXY

CORS_MAX_AGE = "86400"

EXPOSE_HEADERS = ", ".join([TUN_LOCATION, TUN_LOCATION_PROXY, TUN_SET_COOKIE, TUN_STATUS])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, post-check=0, pre-check=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def build_cors_headers(request_headers: Mapping[str, str]) -> Dict[str, str]:
    """
    Compute the CORS headers for a response to this request.

    Args:
        request_headers: Inbound headers (case-insensitive mapping, e.g.
            Starlette's ``request.headers``)

    Returns:
        Header dict to set (replacing any existing values) on the response
    """
    allow_origin = request_headers.get("origin") or "*"
    allow_headers = request_headers.get("access-control-request-headers") or "*"

    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": allow_headers,
        "Access-Control-Max-Age": CORS_MAX_AGE,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Expose-Headers": EXPOSE_HEADERS,
    }
