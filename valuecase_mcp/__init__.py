"""
Valuecase MCP Server
A Model Context Protocol server for the Valuecase spaces and forms API
"""

__version__ = "1.0.0"

from .api_client import APIClient
from .config import config
from .credentials import CredentialManager, StaticCredentialManager
from .dispatcher import RequestDispatcher
from .server_stdio import server as mcp_server
from .tool_registry import ToolRegistry, default_registry

__all__ = [
    "mcp_server",
    "APIClient",
    "config",
    "CredentialManager",
    "StaticCredentialManager",
    "RequestDispatcher",
    "ToolRegistry",
    "default_registry",
]
