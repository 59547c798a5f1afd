"""
FastAPI Gateway Application Factory
===================================

Entry point for the tun-proxy gateway: a single endpoint that lets a
browser client fetch arbitrary third-party URLs through the gateway,
bypassing same-origin restrictions.

Architecture:
    Browser client → Gateway (/proxy?url=...) → Origin server

Routes:
    - /proxy   : Forwarding endpoint (any method, bearer token required)
    - /health  : Health check endpoint

Configuration (see tunnel/app/config.py):
    - TUN_TOKEN: Shared bearer credential
    - TUN_LISTENING: Listen address (default: 0.0.0.0:10010)
    - TUN_TLS / TUN_TLS_CERT / TUN_TLS_KEY: HTTPS serving
    - TUN_HTTP_PROXY: Outbound proxy for forwarded calls
    - TUN_INSECURE_SKIP_VERIFY: Skip origin TLS verification
    - TUN_LOG_LEVEL: Logging level (default: INFO)
    - TUN_CONFIG_FILE: JSON config file (default: config.json)

Running the Service:
    Development:
        uvicorn tunnel.app.main:app --reload --host 127.0.0.1 --port 10010

    From the JSON config file (creates config.temp.json when missing):
        python -m tunnel.app.main [config.json]
        tun-proxy [config.json]
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tunnel.app import __version__
from tunnel.app.config import (
    DEFAULT_CONFIG_FILE,
    Settings,
    get_settings,
    load_or_create,
    validate_configuration,
)
from tunnel.app.proxy.client import create_upstream_client
from tunnel.app.proxy.cors import build_cors_headers
from tunnel.app.proxy.routes import proxy_router


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class AppState:
    """
    Application state container.

    Holds the read-only settings and the shared upstream client. Both are
    safe to read concurrently from every request.
    """
    def __init__(self, settings: Settings):
        self.settings: Settings = settings
        self.upstream_client: Optional[httpx.AsyncClient] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Configure logging
        - Create the shared upstream client (unless one was injected)

    Shutdown tasks:
        - Close the upstream client and its connection pool
    """
    app_state: AppState = app.state.app_state
    settings = app_state.settings

    setup_logging(settings.log_level)
    logger = logging.getLogger("tunnel.main")

    owns_client = app_state.upstream_client is None
    if owns_client:
        app_state.upstream_client = create_upstream_client(settings)

    logger.info(
        "Starting tun-proxy gateway",
        extra={
            "listening": settings.listening,
            "tls": settings.tls,
            "http_proxy": settings.http_proxy or None,
            "insecure_skip_verify": settings.insecure_skip_verify,
        }
    )

    yield

    logger.info("Shutting down tun-proxy gateway")
    if owns_client:
        await app_state.upstream_client.aclose()
        app_state.upstream_client = None


def create_app(
    settings: Optional[Settings] = None,
    upstream_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Gateway settings (defaults to ``get_settings()``)
        upstream_client: Pre-built upstream client; when omitted one is
            created on startup from ``settings``

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="tun-proxy",
        description="Cross-origin forwarding gateway for browser clients",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None
    )

    app_state = AppState(settings)
    app_state.upstream_client = upstream_client
    app.state.app_state = app_state

    app.include_router(proxy_router, tags=["Proxy"])

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        """
        Health check endpoint.

        Returns:
            dict: Service health information
        """
        return {
            "status": "ok",
            "service": "tun-proxy",
            "version": __version__
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response that still
        carries the CORS headers, so browser clients can read it.
        """
        logger = logging.getLogger("tunnel.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.log_level == "DEBUG" else None
            },
            headers=build_cors_headers(request.headers)
        )

    return app


def run(config_path: str = DEFAULT_CONFIG_FILE) -> int:
    """
    Load the config file and serve until interrupted.

    Returns:
        Process exit code
    """
    settings = load_or_create(config_path)
    if settings is None:
        print(
            f"Config file {config_path} not found; a template was written beside it. "
            f"Fill it in, rename it to {config_path} and run again.",
            file=sys.stderr,
        )
        return 1

    report: Dict[str, Any] = validate_configuration(settings)
    for warning in report["warnings"]:
        print(f"warning: {warning}", file=sys.stderr)
    if not report["valid"]:
        for error in report["errors"]:
            print(f"error: {error}", file=sys.stderr)
        return 1

    scheme = "https" if settings.tls else "http"
    print(f"Serving on {scheme}://{settings.listening}")

    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        ssl_certfile=settings.tls_cert if settings.tls else None,
        ssl_keyfile=settings.tls_key if settings.tls else None,
        log_level=settings.log_level.lower()
    )
    return 0


def main() -> None:
    """Console entry point: ``tun-proxy [config.json]``."""
    sys.exit(run(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG_FILE))


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    main()
