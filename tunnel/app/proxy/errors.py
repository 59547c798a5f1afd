"""
Proxy error taxonomy.

Every failure on the /proxy endpoint is terminal for that request and is
reported once as a status code plus a plain-text message. Nothing here is
retried.
"""

from typing import Dict, Optional

from fastapi import status


class ProxyError(Exception):
    """Base exception for request-level proxy failures"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers or {}


class ClientInputError(ProxyError):
    """The target URL is missing or cannot be parsed."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ProxyError):
    """The bearer credential is missing or does not match."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized: bearer authentication failed"):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class UpstreamError(ProxyError):
    """The forwarded call failed (connect, DNS, TLS, timeout...)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
