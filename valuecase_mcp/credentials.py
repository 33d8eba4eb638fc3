import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from .errors import AuthFailure

logger = logging.getLogger(__name__)

# Credentials are renewed this long before the issuer says they expire
EXPIRY_SAFETY_MARGIN = timedelta(seconds=60)
# Used when the token response omits expires_in
DEFAULT_EXPIRES_IN = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credential:
    """Bearer token plus the instant after which it must not be used"""

    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class CredentialManager:
    """
    Owns the single cached bearer credential for the Valuecase API

    The credential is obtained through an OAuth2 client-credentials exchange
    and renewed transparently once it is within EXPIRY_SAFETY_MARGIN of expiry.
    Refreshes are serialized with a lock, so concurrent callers that arrive
    while no valid credential is cached share one token exchange.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the credential manager

        Args:
            client_id: OAuth2 client identifier
            client_secret: OAuth2 client secret
            token_url: Token-issuance endpoint
            timeout: Timeout for the exchange request in seconds
            clock: Returns the current UTC time (injectable for tests)
            transport: Optional httpx transport (injectable for tests)
        """
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._timeout = timeout
        self._clock = clock
        self._transport = transport

        self._credential: Credential | None = None
        self._lock = asyncio.Lock()

    async def get_valid_credential(self) -> Credential:
        """
        Return a credential that is valid right now, fetching a new one if needed

        Raises:
            AuthFailure: If the token exchange fails
        """
        credential = self._credential
        if credential is not None and credential.is_valid(self._clock()):
            return credential

        async with self._lock:
            # Another caller may have refreshed while we waited
            credential = self._credential
            if credential is not None and credential.is_valid(self._clock()):
                return credential

            self._credential = await self._exchange()
            return self._credential

    async def _exchange(self) -> Credential:
        """Perform the client-credentials exchange"""
        logger.info(f"🔐 Requesting access token from {self._token_url}")

        payload = {"client_id": self._client_id, "client_secret": self._client_secret}

        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._token_url,
                    json=payload,
                    headers={"Content-Type": "application/json", "Accept": "application/json"},
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Token exchange rejected ({e.response.status_code})")
            raise AuthFailure(f"Token exchange failed: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Token exchange failed: {e}")
            raise AuthFailure(f"Token exchange failed: {e}") from e
        except ValueError as e:
            logger.error(f"❌ Token endpoint returned invalid JSON: {e}")
            raise AuthFailure(f"Token exchange returned an invalid response: {e}") from e

        if not isinstance(body, dict) or not body.get("access_token"):
            raise AuthFailure("Token exchange response did not include an access_token")

        try:
            expires_in = int(body.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError) as e:
            raise AuthFailure(f"Token exchange returned an invalid expires_in: {body.get('expires_in')!r}") from e

        expires_at = self._clock() + timedelta(seconds=expires_in) - EXPIRY_SAFETY_MARGIN
        logger.info(f"✅ Access token acquired (expires in {expires_in}s, renewing at {expires_at.isoformat()})")

        return Credential(token=str(body["access_token"]), expires_at=expires_at)


class StaticCredentialManager:
    """Hands out a fixed API key as a credential that never expires"""

    def __init__(self, api_key: str):
        self._credential = Credential(token=api_key, expires_at=datetime.max.replace(tzinfo=timezone.utc))

    async def get_valid_credential(self) -> Credential:
        return self._credential


def create_credential_manager(config) -> CredentialManager | StaticCredentialManager:
    """Build the credential manager that matches the configured auth mode"""
    if config.uses_static_key:
        logger.info("🔑 Using static API key")
        return StaticCredentialManager(config.api_key)

    logger.info("🔑 Using OAuth2 client credentials")
    return CredentialManager(
        client_id=config.client_id,
        client_secret=config.client_secret,
        token_url=config.token_url,
        timeout=config.request_timeout,
    )
