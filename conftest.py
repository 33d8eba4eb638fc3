"""Pytest config: add project root to path, shared upstream mocks and a controllable clock."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest

# Add project root to Python path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

API_BASE_URL = "https://api.valuecase.test/v1"
TOKEN_URL = "https://auth.valuecase.test/oauth/token"


class FakeClock:
    """Callable returning a UTC datetime that only moves when told to"""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class MockUpstream:
    """
    Records outbound requests and answers them from a (method, path) table

    Each route holds a list of responses consumed in order; the last one
    repeats. A response is either an exception instance (raised from the
    transport) or a (status_code, json_body) tuple.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Any]] = {}

    def add(self, method: str, path: str, *responses: Any) -> None:
        self._routes[(method.upper(), path)] = list(responses)

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"No mock for {request.method} {request.url.path}"})

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        status_code, body = response
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handler)

    def calls(self, path: str, method: str | None = None) -> int:
        return sum(1 for r in self.requests if r.url.path == path and (method is None or r.method == method.upper()))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return MockUpstream()


@pytest.fixture
def recorded_sleeps():
    """List of delays passed to the injected sleep function"""
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps):
    async def _sleep(seconds: float) -> None:
        recorded_sleeps.append(seconds)

    return _sleep
