"""
Proxy Package
=============

This package implements the /proxy forwarding endpoint and the header and
redirect translation protocol around it.

Main Components:
----------------
- routes.py:   FastAPI router, per-request orchestration
- headers.py:  Request/response header translation (whitelist, tun- prefix)
- redirect.py: Location rewriting into tun-Location / tun-Location-Proxy
- origin.py:   Target URL parsing and origin resolution
- cors.py:     CORS headers stamped on every response
- client.py:   Shared outbound httpx client
- errors.py:   ProxyError taxonomy (400 / 401 / 500)

Usage:
------
    from tunnel.app.proxy.routes import proxy_router
    app.include_router(proxy_router)
"""

from .routes import proxy_router

__all__ = ["proxy_router"]
