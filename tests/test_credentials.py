#!/usr/bin/env python3
"""
Tests for the credential manager: token exchange, caching, early renewal and failures
"""

import asyncio
import json
from datetime import timedelta

import httpx
import pytest

from conftest import TOKEN_URL
from valuecase_mcp.config import Config
from valuecase_mcp.credentials import (
    EXPIRY_SAFETY_MARGIN,
    CredentialManager,
    StaticCredentialManager,
    create_credential_manager,
)
from valuecase_mcp.errors import AuthFailure

TOKEN_PATH = "/oauth/token"


def make_manager(upstream, clock) -> CredentialManager:
    return CredentialManager(
        client_id="client-123",
        client_secret="s3cret",
        token_url=TOKEN_URL,
        clock=clock,
        transport=upstream.transport,
    )


class TestTokenExchange:
    """Test the client-credentials exchange itself"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_first_call_fetches_token(self, upstream, clock):
        """Test that the first call performs one exchange and returns its token"""
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok-1", "expires_in": 3600}))
        manager = make_manager(upstream, clock)

        credential = await manager.get_valid_credential()

        assert credential.token == "tok-1"
        assert upstream.calls(TOKEN_PATH) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exchange_sends_client_id_and_secret(self, upstream, clock):
        """Test the request body carries the configured client identity"""
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok-1", "expires_in": 3600}))
        manager = make_manager(upstream, clock)

        await manager.get_valid_credential()

        request = upstream.requests[0]
        assert request.method == "POST"
        assert str(request.url) == TOKEN_URL
        assert json.loads(request.content) == {"client_id": "client-123", "client_secret": "s3cret"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_expiry_includes_safety_margin(self, upstream, clock):
        """Test expires_at = now + expires_in - 60s"""
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok-1", "expires_in": 3600}))
        manager = make_manager(upstream, clock)

        credential = await manager.get_valid_credential()

        assert EXPIRY_SAFETY_MARGIN == timedelta(seconds=60)
        assert credential.expires_at == clock.now + timedelta(seconds=3540)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_expires_in_defaults_to_one_hour(self, upstream, clock):
        """Test that a response without expires_in is treated as a one-hour token"""
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok-1"}))
        manager = make_manager(upstream, clock)

        credential = await manager.get_valid_credential()

        assert credential.expires_at == clock.now + timedelta(seconds=3540)


class TestCaching:
    """Test that valid credentials are reused and expired ones are renewed"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cached_credential_reused_before_renewal_point(self, upstream, clock):
        """Test no second exchange while inside expires_in minus the margin"""
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok-1", "expires_in": 3600}))
        manager = make_manager(upstream, clock)

        first = await manager.get_valid_credential()
        clock.advance(3539)
        second = await manager.get_valid_credential()

        assert second is first
        assert upstream.calls(TOKEN_PATH) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refresh_at_renewal_point(self, upstream, clock):
        """Test a call exactly at expires_in - 60s triggers a refresh"""
        upstream.add(
            "POST",
            TOKEN_PATH,
            (200, {"access_token": "tok-1", "expires_in": 3600}),
            (200, {"access_token": "tok-2", "expires_in": 3600}),
        )
        manager = make_manager(upstream, clock)

        await manager.get_valid_credential()
        clock.advance(3540)
        renewed = await manager.get_valid_credential()

        assert renewed.token == "tok-2"
        assert upstream.calls(TOKEN_PATH) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_short_lived_token_is_refreshed_every_call(self, upstream, clock):
        """Test that a token living less than the margin is never served from cache"""
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok", "expires_in": 30}))
        manager = make_manager(upstream, clock)

        await manager.get_valid_credential()
        await manager.get_valid_credential()

        assert upstream.calls(TOKEN_PATH) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_first_use_shares_one_exchange(self, upstream, clock):
        """
        Test concurrent callers with no cached credential trigger a single exchange

        Serializing refreshes is a choice of this manager rather than a protocol
        requirement: without it each caller would fetch its own token.
        """
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok-1", "expires_in": 3600}))
        manager = make_manager(upstream, clock)

        results = await asyncio.gather(*(manager.get_valid_credential() for _ in range(5)))

        assert {c.token for c in results} == {"tok-1"}
        assert upstream.calls(TOKEN_PATH) == 1


class TestExchangeFailures:
    """Test that exchange failures surface as AuthFailure without retries"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejected_credentials(self, upstream, clock):
        """Test 401 from the token endpoint"""
        upstream.add("POST", TOKEN_PATH, (401, {"error": "invalid_client"}))
        manager = make_manager(upstream, clock)

        with pytest.raises(AuthFailure) as exc_info:
            await manager.get_valid_credential()

        assert "401" in str(exc_info.value)
        assert upstream.calls(TOKEN_PATH) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connection_error(self, upstream, clock):
        """Test network failure keeps the underlying message"""
        upstream.add("POST", TOKEN_PATH, httpx.ConnectError("Connection refused"))
        manager = make_manager(upstream, clock)

        with pytest.raises(AuthFailure) as exc_info:
            await manager.get_valid_credential()

        assert "Connection refused" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limited_exchange_is_not_retried(self, upstream, clock):
        """Test that even a 429 from the token endpoint fails immediately"""
        upstream.add("POST", TOKEN_PATH, (429, {"error": "slow down"}))
        manager = make_manager(upstream, clock)

        with pytest.raises(AuthFailure):
            await manager.get_valid_credential()

        assert upstream.calls(TOKEN_PATH) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_access_token(self, upstream, clock):
        """Test a 200 without access_token is an auth failure"""
        upstream.add("POST", TOKEN_PATH, (200, {"expires_in": 3600}))
        manager = make_manager(upstream, clock)

        with pytest.raises(AuthFailure, match="access_token"):
            await manager.get_valid_credential()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_expires_in(self, upstream, clock):
        """Test a non-numeric expires_in is rejected"""
        upstream.add("POST", TOKEN_PATH, (200, {"access_token": "tok", "expires_in": "soon"}))
        manager = make_manager(upstream, clock)

        with pytest.raises(AuthFailure, match="expires_in"):
            await manager.get_valid_credential()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_does_not_poison_cache(self, upstream, clock):
        """Test that a later call retries the exchange after a failure"""
        upstream.add(
            "POST",
            TOKEN_PATH,
            httpx.ConnectError("Connection refused"),
            (200, {"access_token": "tok-1", "expires_in": 3600}),
        )
        manager = make_manager(upstream, clock)

        with pytest.raises(AuthFailure):
            await manager.get_valid_credential()
        credential = await manager.get_valid_credential()

        assert credential.token == "tok-1"
        assert upstream.calls(TOKEN_PATH) == 2


class TestStaticCredentials:
    """Test the static API key variant"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_static_key_never_expires(self, clock):
        """Test the static manager always returns the configured key"""
        manager = StaticCredentialManager("api-key-123")

        first = await manager.get_valid_credential()
        second = await manager.get_valid_credential()

        assert first.token == "api-key-123"
        assert second is first
        assert first.is_valid(clock.now + timedelta(days=3650))

    @pytest.mark.unit
    def test_factory_picks_static_manager_for_api_key(self):
        cfg = Config(api_key="api-key-123", client_id="", client_secret="")
        assert isinstance(create_credential_manager(cfg), StaticCredentialManager)

    @pytest.mark.unit
    def test_factory_picks_client_credentials_without_api_key(self):
        cfg = Config(api_key="", client_id="id", client_secret="secret", token_url=TOKEN_URL)
        assert isinstance(create_credential_manager(cfg), CredentialManager)
