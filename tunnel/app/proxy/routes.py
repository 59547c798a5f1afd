"""
Proxy Route - Cross-Origin Forwarding Endpoint
==============================================

``ANY /proxy?url=<absolute url>``

Forwards the request to ``url`` and returns the origin's response with its
headers translated so a browser client can read it cross-origin.

Request lifecycle:
------------------
1. Compute CORS headers from the inbound request
2. OPTIONS (preflight) -> 200 with CORS headers only
3. Check the bearer credential                  -> 401 on failure
4. Resolve the origin of ``url``                -> 400 on failure
5. Translate request headers, forward the call  -> 500 on failure
6. Translate response headers, rewrite Location
7. Stream the origin body back; 3xx becomes 200 (true code in tun-status)

CORS headers from step 1 are merged onto whatever response is produced.
"""

import logging
from typing import AsyncIterator, Mapping

import httpx
from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from ..auth import valid_bearer
from ..models import HeaderList, ProxyRequest
from .cors import NO_CACHE_HEADERS, build_cors_headers
from .errors import AuthenticationError, ClientInputError, ProxyError, UpstreamError
from .headers import is_redirect_status, translate_request_headers, translate_response_headers
from .origin import parse_target_url, resolve_origin
from .redirect import PROXY_PATH, rewrite_location

logger = logging.getLogger(__name__)

proxy_router = APIRouter()

# Framing is redone by the server layer for the streamed body
_HOP_BY_HOP_RESPONSE_HEADERS = frozenset({"transfer-encoding", "connection"})


def apply_headers(response: Response, headers: Mapping[str, str]) -> Response:
    """Set ``headers`` on ``response``, replacing any existing values."""
    for name, value in headers.items():
        response.headers[name] = value
    return response


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """
    Fetch the shared upstream client from app state.

    Raises:
        UpstreamError: If the client has not been initialised
    """
    app_state = getattr(request.app.state, "app_state", None)
    client = getattr(app_state, "upstream_client", None)
    if client is None:
        raise UpstreamError("Upstream client not initialized")
    return client


def authenticate(request: Request) -> None:
    """
    Raises:
        AuthenticationError: If the Authorization header does not carry the
            configured credential
    """
    settings = request.app.state.app_state.settings
    if not valid_bearer(request.headers.get("authorization"), settings.token):
        logger.warning(
            "Rejected request with invalid bearer credential",
            extra={"client": request.client.host if request.client else None},
        )
        raise AuthenticationError()


async def build_proxy_request(request: Request) -> ProxyRequest:
    url = request.query_params.get("url")
    if not url:
        raise ClientInputError("Missing url parameter")

    return ProxyRequest(
        method=request.method,
        url=url,
        headers=list(request.headers.items()),
        body=await request.body(),
    )


async def forward(client: httpx.AsyncClient, proxy_request: ProxyRequest, headers: HeaderList) -> httpx.Response:
    """
    Send the forwarded call and return the (still streaming) response.

    Raises:
        UpstreamError: On any transport-level failure
    """
    upstream_request = client.build_request(
        proxy_request.method,
        parse_target_url(proxy_request.url),
        headers=[(name.encode("latin-1"), value.encode("latin-1")) for name, value in headers],
        content=proxy_request.body or None,
    )

    try:
        return await client.send(upstream_request, stream=True)
    except httpx.HTTPError as e:
        logger.error(
            f"Upstream request failed: {e!r}",
            extra={"method": proxy_request.method, "url": proxy_request.url},
        )
        raise UpstreamError(f"Upstream request failed: {e}") from e


async def stream_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the origin body byte-for-byte, closing the upstream response after."""
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        # Re-raised so the server aborts the connection instead of ending the body cleanly
        logger.error(f"Upstream body stream interrupted: {e!r}", extra={"url": str(upstream.url)})
        raise
    finally:
        await upstream.aclose()


async def handle_proxy_request(request: Request) -> Response:
    """Authenticate, forward and translate a single non-preflight request."""
    authenticate(request)

    proxy_request = await build_proxy_request(request)
    origin = resolve_origin(proxy_request.url)

    outbound_headers = translate_request_headers(proxy_request.headers)

    logger.info(
        "Proxying request",
        extra={"method": proxy_request.method, "url": proxy_request.url},
    )

    client = get_upstream_client(request)
    upstream = await forward(client, proxy_request, outbound_headers)

    raw_headers = [
        (name.decode("latin-1"), value.decode("latin-1"))
        for name, value in upstream.headers.raw
    ]
    response_headers = translate_response_headers(raw_headers, upstream.status_code)
    rewrite_location(response_headers, origin)

    # The browser must never auto-follow; the real code is in tun-status
    status_code = status.HTTP_200_OK if is_redirect_status(upstream.status_code) else upstream.status_code

    response = StreamingResponse(stream_body(upstream), status_code=status_code)
    for name, value in response_headers:
        if name.lower() in _HOP_BY_HOP_RESPONSE_HEADERS:
            continue
        response.headers.append(name, value)

    return response


async def proxy(request: Request) -> Response:
    """
    Forward the request to the URL in the ``url`` query parameter.

    Every response, including preflight and error responses, carries the
    CORS headers computed on entry.
    """
    cors_headers = build_cors_headers(request.headers)

    if request.method == "OPTIONS":
        return apply_headers(Response(status_code=status.HTTP_200_OK), cors_headers)

    cors_headers.update(NO_CACHE_HEADERS)

    try:
        response = await handle_proxy_request(request)
    except ProxyError as e:
        logger.info(
            f"Proxy request failed with {e.status_code}: {e.message}",
            extra={"method": request.method, "status_code": e.status_code},
        )
        response = PlainTextResponse(e.message, status_code=e.status_code, headers=e.headers)

    return apply_headers(response, cors_headers)


# No method list: every method, WebDAV and custom verbs included, lands here
proxy_router.add_route(PROXY_PATH, proxy, include_in_schema=False)
