import logging
from typing import Any

import httpx

from .models import UpstreamRequest

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def bearer(token: str) -> str:
    """Return an Authorization header value, adding the Bearer prefix when missing"""
    if not token:
        return BEARER_PREFIX
    if token.startswith(BEARER_PREFIX):
        return token
    return f"{BEARER_PREFIX}{token}"


class APIClient:
    """Client for making authenticated requests to the Valuecase API"""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize the API client

        Args:
            base_url: Base URL of the Valuecase API, including the version path (e.g. https://api.valuecase.com/v1)
            timeout: Default request timeout in seconds
            transport: Optional httpx transport (injectable for tests)
        """
        # Paths are appended to the base URL, so the version prefix must survive
        # Examples:
        #   https://api.valuecase.com/v1/ -> https://api.valuecase.com/v1
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def build_headers(token: str) -> dict[str, str]:
        """Get request headers with authentication"""
        return {
            "Authorization": bearer(token),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build_request(self, path: str, token: str, method: str = "GET") -> UpstreamRequest:
        return UpstreamRequest(method=method, path=path, headers=self.build_headers(token))

    async def send(self, request: UpstreamRequest) -> Any:
        """
        Execute a resolved upstream request

        Args:
            request: Method, path (relative to base_url) and headers

        Returns:
            Decoded JSON response body (None for an empty body)

        Raises:
            httpx.HTTPError: If the request fails or the status is not 2xx
        """
        url = f"{self.base_url}{request.path}"

        logger.info(f"🔍 Valuecase API Request: {request.method} {url}")

        async with httpx.AsyncClient(follow_redirects=True, http2=True, timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(request.method, url, headers=request.headers)
            response.raise_for_status()

            if not response.content:
                logger.info(f"✅ Response: {response.status_code} (empty body)")
                return None

            response_data = response.json()

        logger.info(f"✅ Response: {response.status_code}")
        if isinstance(response_data, list):
            logger.info(f"   Items returned: {len(response_data)}")
        elif isinstance(response_data, dict) and isinstance(response_data.get("data"), list):
            logger.info(f"   Items returned: {len(response_data['data'])}")

        return response_data

    async def get(self, path: str, token: str) -> Any:
        """
        Make a GET request to the API

        Args:
            path: API path (e.g., "/spaces" or "/forms/{formId}")
            token: Bearer token (with or without "Bearer" prefix)

        Returns:
            JSON response from the API
        """
        return await self.send(self.build_request(path, token))
