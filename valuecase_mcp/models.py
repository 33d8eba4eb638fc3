"""
Pydantic models for type safety and validation
"""

import copy
import json
from typing import Any, Literal

from mcp import types
from pydantic import BaseModel, ConfigDict, Field


class ToolDefinition(BaseModel):
    """A tool the server advertises: name, description and JSON input schema"""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    @property
    def required(self) -> list[str]:
        return list(self.input_schema.get("required", []))

    @property
    def properties(self) -> dict[str, dict[str, Any]]:
        return dict(self.input_schema.get("properties", {}))

    def to_mcp(self) -> types.Tool:
        return types.Tool(name=self.name, description=self.description, inputSchema=copy.deepcopy(self.input_schema))


class ToolInvocation(BaseModel):
    """Tool execution request"""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """Tool call response (compatible with MCP)"""

    content: list[TextContent]
    is_error: bool = False

    @classmethod
    def success(cls, body: Any) -> "ToolResult":
        """Wrap an upstream response body as pretty-printed JSON"""
        return cls(content=[TextContent(text=json.dumps(body, indent=2, ensure_ascii=False))], is_error=False)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(content=[TextContent(text=message)], is_error=True)

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content)

    def to_mcp(self) -> types.CallToolResult:
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=block.text) for block in self.content],
            isError=self.is_error,
        )


class UpstreamRequest(BaseModel):
    """A resolved upstream HTTP call, rebuilt for every invocation"""

    method: str = "GET"
    path: str
    headers: dict[str, str] = Field(default_factory=dict)
