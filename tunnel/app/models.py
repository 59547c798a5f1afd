"""
Data Models Module

Pydantic models for the values that flow through a single proxied request.

Header collections are kept as ordered lists of ``(name, value)`` pairs
rather than dicts: HTTP headers are multi-valued (``Set-Cookie`` being the
usual example) and order-preserving, and a dict would silently collapse them.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

HeaderList = List[Tuple[str, str]]


def get_header(headers: HeaderList, name: str) -> Optional[str]:
    """Return the first value of ``name`` (case-insensitive), or None."""
    wanted = name.lower()
    for key, value in headers:
        if key.lower() == wanted:
            return value
    return None


# ============================================================================
# Request Models
# ============================================================================

class ProxyRequest(BaseModel):
    """An inbound request to be forwarded to ``url``."""

    model_config = ConfigDict(frozen=True)

    method: str = Field(..., description="HTTP method, forwarded unchanged")
    url: str = Field(..., description="Absolute target URL from the `url` query parameter")
    headers: HeaderList = Field(default_factory=list, description="Inbound headers, in arrival order")
    body: bytes = Field(default=b"", description="Request body, forwarded as-is")


# ============================================================================
# Response Models
# ============================================================================

class RewrittenRedirect(BaseModel):
    """A redirect target resolved against the request origin."""

    model_config = ConfigDict(frozen=True)

    location: str = Field(..., description="Absolute redirect target")
    location_proxy: str = Field(..., description="Same-origin /proxy URL that re-enters the gateway")
