#!/usr/bin/env python3
"""
Valuecase MCP Server - process entry point

Runs two things side by side in one event loop:
- the MCP server on stdio (tools for Valuecase spaces and forms)
- a small HTTP server with a health check and a token-validation endpoint,
  used by third parties to check a Valuecase bearer token before handing it over

stdout carries MCP JSON-RPC only; every log line goes to stderr.
"""

import logging
import sys

import anyio
import httpx
import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .config import Config, config
from .server_stdio import get_dispatcher, run_stdio
from .token_validator import normalize_token, validate_token

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(debug: bool = False) -> None:
    """Send all logs to stderr (stdout is for JSON-RPC only!)"""
    logging.basicConfig(stream=sys.stderr, level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)

    # Suppress noisy library logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("mcp.server.lowlevel.server").setLevel(logging.WARNING)


# ============================================================================
# Token validation HTTP endpoint
# ============================================================================


async def health(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "healthy",
            "service": "valuecase-mcp",
            "transport": "stdio",
            "endpoints": ["/health", "/validate-token"],
        }
    )


async def validate_token_endpoint(request: Request) -> JSONResponse:
    """Check the caller's Authorization: Bearer token with one GET /spaces upstream"""
    cfg: Config = request.app.state.config
    auth_header = request.headers.get("authorization", "")
    token = normalize_token(auth_header)

    if not token:
        return JSONResponse(
            {"valid": False, "error": "Missing Authorization header. Expected: Authorization: Bearer <token>"},
            status_code=401,
        )

    is_valid, status_code, error = await validate_token(
        token,
        cfg.api_base_url,
        timeout=cfg.request_timeout,
        transport=request.app.state.transport,
    )

    if is_valid:
        return JSONResponse({"valid": True})

    return JSONResponse({"valid": False, "error": error}, status_code=status_code)


def create_app(cfg: Config = config, transport: httpx.AsyncBaseTransport | None = None) -> Starlette:
    """
    Build the token validation app

    Args:
        cfg: Configuration providing the upstream base URL and timeout
        transport: Optional httpx transport for upstream calls (injectable for tests)
    """
    app = Starlette(
        routes=[
            Route("/", health, methods=["GET"]),
            Route("/health", health, methods=["GET"]),
            Route("/validate-token", validate_token_endpoint, methods=["GET", "POST"]),
        ]
    )
    app.state.config = cfg
    app.state.transport = transport
    return app


async def serve_http(cfg: Config = config) -> None:
    """Run the token validation app with uvicorn"""
    uvicorn_config = uvicorn.Config(
        create_app(cfg),
        host=cfg.host,
        port=cfg.port,
        log_level="debug" if cfg.debug else "info",
        log_config=None,  # keep uvicorn on our stderr handlers
        access_log=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    server = uvicorn.Server(uvicorn_config)
    logger.info(f"🌐 Token validation endpoint on http://{cfg.host}:{cfg.port}/validate-token")
    await server.serve()


async def run_server_async() -> None:
    """Run the stdio MCP server, plus the HTTP endpoint when enabled"""
    get_dispatcher()

    async with anyio.create_task_group() as tg:
        if config.validation_server_enabled:
            tg.start_soon(serve_http, config)

        await run_stdio()

        # stdio closed: the client is gone, stop the HTTP side too
        tg.cancel_scope.cancel()


def main():
    """Validate configuration and start the servers"""

    def log_startup(message):
        print(message, file=sys.stderr, flush=True)

    setup_logging(config.debug)

    errors = config.validate()
    if errors:
        log_startup("❌ Configuration errors:")
        for error in errors:
            log_startup(f"  - {error}")
        sys.exit(1)

    try:
        log_startup("=" * 60)
        log_startup("🚀 Valuecase MCP Server")
        log_startup("=" * 60)
        log_startup(f"📡 API endpoint: {config.api_base_url}")
        log_startup(f"🔑 Auth mode: {'static API key' if config.uses_static_key else 'OAuth2 client credentials'}")
        if config.validation_server_enabled:
            log_startup(f"✓ Token validation: http://{config.host}:{config.port}/validate-token")
        log_startup("✓ Starting server on stdio...")
        log_startup("=" * 60 + "\n")

        anyio.run(run_server_async)

    except KeyboardInterrupt:
        log_startup("\n\nShutting down server...")
        sys.exit(0)
    except Exception as e:
        log_startup(f"\n❌ Error: {e}")
        import traceback

        traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
