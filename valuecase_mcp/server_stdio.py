#!/usr/bin/env python3
"""
MCP server for the Valuecase API - stdio transport

Tool definitions are published verbatim from the tool registry and every
call is routed through the request dispatcher, which always answers with a
well-formed CallToolResult.
"""

import logging
from typing import Any

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from . import __version__
from .api_client import APIClient
from .config import Config, config
from .credentials import create_credential_manager
from .dispatcher import RequestDispatcher
from .tool_registry import default_registry

logger = logging.getLogger(__name__)

server = Server("valuecase-mcp", version=__version__)

_dispatcher: RequestDispatcher | None = None


def create_dispatcher(cfg: Config) -> RequestDispatcher:
    """Wire registry, credential manager and API client from configuration"""
    return RequestDispatcher(
        registry=default_registry(),
        credentials=create_credential_manager(cfg),
        api_client=APIClient(base_url=cfg.api_base_url, timeout=cfg.request_timeout),
    )


def get_dispatcher() -> RequestDispatcher:
    """Return the process-wide dispatcher, creating it on first use"""
    global _dispatcher

    if _dispatcher is None:
        _dispatcher = create_dispatcher(config)
        logger.info(f"✓ Dispatcher ready for {config.api_base_url} ({len(_dispatcher.list_tools())} tools)")

    return _dispatcher


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return [tool.to_mcp() for tool in get_dispatcher().list_tools()]


# Input validation is left to the tool registry so that invalid arguments and
# unknown tools produce this server's own error results.
@server.call_tool(validate_input=False)
async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
    result = await get_dispatcher().call_tool(name, arguments)
    return result.to_mcp()


async def run_stdio() -> None:
    """Serve MCP over stdin/stdout until the client disconnects"""
    async with stdio_server() as (read_stream, write_stream):
        logger.info("✓ Valuecase MCP Server running on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
