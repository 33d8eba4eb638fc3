from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from .errors import InvalidArgumentsError, UnknownToolError
from .models import ToolDefinition, ToolInvocation, ToolResult
from .retry import RetryPolicy, execute_with_retry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from .api_client import APIClient
    from .credentials import CredentialManager, StaticCredentialManager
    from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

# Tool name -> upstream GET path template
ROUTES: dict[str, str] = {
    "valuecase_list_spaces": "/spaces",
    "valuecase_get_space": "/spaces/{spaceId}",
    "valuecase_list_forms": "/spaces/{spaceId}/forms",
    "valuecase_get_form": "/forms/{formId}",
    "valuecase_get_form_content": "/forms/{formId}/content",
}

# RFC 3986 pchar minus unreserved (which quote() never escapes)
PATH_SEGMENT_SAFE = "!$&'()*+,;=:@"
_PLACEHOLDER = re.compile(r"\{(\w+)\}")
# Would be normalized away by the HTTP client, moving the request to another endpoint
DOT_SEGMENTS = frozenset({".", ".."})


def resolve_path(template: str, arguments: Mapping[str, Any]) -> str:
    """
    Substitute path parameters into a route template

    Values are inserted as-is except for characters that cannot appear inside
    a single path segment (e.g. "/", "?", "#", spaces), which are percent-encoded.

    Raises:
        InvalidArgumentsError: If the template names a parameter that is not supplied,
            or a value is a "." or ".." dot segment
    """

    def _substitute(match: re.Match) -> str:
        param = match.group(1)
        if param not in arguments or str(arguments[param]) in DOT_SEGMENTS:
            raise InvalidArgumentsError(f"Missing or invalid {param}")
        return quote(str(arguments[param]), safe=PATH_SEGMENT_SAFE)

    return _PLACEHOLDER.sub(_substitute, template)


def describe_error(error: BaseException) -> str:
    """Turn an upstream/auth failure into a short human-readable message"""
    if isinstance(error, httpx.HTTPStatusError):
        message = f"Request failed with status code {error.response.status_code}"
        try:
            body = error.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error")
            if isinstance(detail, str) and detail:
                message = f"{message}: {detail}"
        return message

    return str(error) or error.__class__.__name__


class RequestDispatcher:
    """Maps tool invocations onto authenticated Valuecase API calls"""

    def __init__(
        self,
        registry: ToolRegistry,
        credentials: CredentialManager | StaticCredentialManager,
        api_client: APIClient,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        routes: Mapping[str, str] | None = None,
    ):
        self.registry = registry
        self.credentials = credentials
        self.api_client = api_client
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._routes = dict(ROUTES if routes is None else routes)

    def list_tools(self) -> list[ToolDefinition]:
        return self.registry.list_tools()

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        return await self.dispatch(ToolInvocation(name=name, arguments=dict(arguments or {})))

    async def dispatch(self, invocation: ToolInvocation) -> ToolResult:
        """
        Execute one tool invocation and normalize the outcome

        Never raises: validation, authentication and upstream failures are all
        returned as a ToolResult with is_error=True.
        """
        name = invocation.name
        arguments = invocation.arguments

        try:
            self.registry.validate(name, arguments)
        except UnknownToolError:
            logger.warning(f"⚠️  Unknown tool requested: {name}")
            return ToolResult.error(f"Unknown tool: {name}")
        except InvalidArgumentsError as e:
            logger.warning(f"⚠️  Invalid parameters for {name}: {e}")
            return ToolResult.error(f"Error: Invalid parameters: {e}")

        template = self._routes.get(name)
        if template is None:
            logger.error(f"❌ Tool {name} is registered but has no upstream route")
            return ToolResult.error(f"Unknown tool: {name}")

        try:
            path = resolve_path(template, arguments)
        except InvalidArgumentsError as e:
            logger.warning(f"⚠️  Invalid parameters for {name}: {e}")
            return ToolResult.error(f"Error: Invalid parameters: {e}")

        try:
            credential = await self.credentials.get_valid_credential()
            request = self.api_client.build_request(path, credential.token)

            body = await execute_with_retry(
                lambda: self.api_client.send(request),
                f"{name} {request.method} {path}",
                policy=self.retry_policy,
                sleep=self._sleep,
            )
        except Exception as e:
            message = describe_error(e)
            logger.error(f"❌ {name} failed: {message}")
            return ToolResult.error(f"Error: {message}")

        return ToolResult.success(body)
