import logging

import httpx

from .api_client import APIClient

logger = logging.getLogger(__name__)


def normalize_token(token: str) -> str:
    """
    Normalize a caller-supplied token.

    - Strip leading/trailing whitespace.
    - If the value starts with "Bearer " (case-insensitive), strip that prefix
      so the value is the raw token.
    """
    if not token or not isinstance(token, str):
        return ""
    s = token.strip()
    if s.upper().startswith("BEARER "):
        s = s[7:].strip()
    return s


async def validate_token(
    token: str,
    api_base_url: str,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[bool, int, str | None]:
    """
    Validate a bearer token against the Valuecase API

    Calls GET /spaces with the token. Nothing is cached: every call is a
    fresh upstream round trip, independent of the server's own credential.

    Args:
        token: The bearer token to validate (raw, without "Bearer ")
        api_base_url: The API base URL (e.g., "https://api.valuecase.com/v1")
        timeout: Request timeout in seconds
        transport: Optional httpx transport (injectable for tests)

    Returns:
        Tuple of (is_valid, status_code, error_message)
        - is_valid: True if the upstream accepted the token
        - status_code: HTTP status to report to the caller
        - error_message: Error description (if invalid)
    """
    if not token or not isinstance(token, str) or not token.strip():
        return (False, 401, "Missing or empty token")

    client = APIClient(base_url=api_base_url, timeout=timeout, transport=transport)

    try:
        logger.info(f"🔐 Validating caller token against {client.base_url} (API call)...")
        await client.get("/spaces", token.strip())

    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        if status in (401, 403):
            error = f"Token rejected by Valuecase API ({status})"
            logger.warning(f"❌ {error}")
            return (False, 401, error)

        error = f"Token validation failed with status {status}"
        logger.warning(f"❌ {error}")
        return (False, 502, error)

    except httpx.TimeoutException:
        error = "Token validation timed out"
        logger.error(f"❌ {error}")
        return (False, 502, error)

    except httpx.HTTPError as e:
        error = f"Token validation failed: {str(e)}"
        logger.error(f"❌ {error}")
        return (False, 502, error)

    except ValueError:
        # 2xx with a non-JSON body still means the token was accepted
        logger.debug("Token validation response was not JSON")

    logger.info("✅ Caller token validated successfully")
    return (True, 200, None)
