import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (directory containing valuecase_mcp/), so env is found regardless of cwd.
# MCP hosts (Claude Desktop, Cursor) often start the server from an unrelated directory.
_project_root = Path(__file__).resolve().parent.parent
_env_file = _project_root / ".env"
load_dotenv(_env_file)
if not _env_file.exists():
    # Fallback: try cwd (e.g. when run as "python -m valuecase_mcp.server" from repo root)
    load_dotenv()

DEFAULT_API_URL = "https://api.valuecase.com/v1"
DEFAULT_TOKEN_URL = "https://app.valuecase.com/dashboard/api/api-auth/token"


@dataclass
class Config:
    """Application configuration"""

    # Client-credentials exchange
    client_id: str = os.getenv("VALUECASE_CLIENT_ID", "")
    client_secret: str = os.getenv("VALUECASE_CLIENT_SECRET", "")
    token_url: str = os.getenv("VALUECASE_TOKEN_URL", DEFAULT_TOKEN_URL)

    # Static API key (skips the token exchange when set)
    api_key: str = os.getenv("VALUECASE_API_KEY", "")

    # API Configuration
    api_base_url: str = os.getenv("VALUECASE_API_URL", DEFAULT_API_URL)
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "30"))

    # Server Configuration
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Token validation endpoint (auxiliary HTTP server)
    validation_server_enabled: bool = os.getenv("VALIDATION_SERVER_ENABLED", "true").lower() == "true"
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))

    @property
    def uses_static_key(self) -> bool:
        return bool(self.api_key)

    def validate(self) -> list[str]:
        """
        Validate configuration

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.api_base_url:
            errors.append("VALUECASE_API_URL is not configured")

        if self.uses_static_key:
            return errors

        if not self.client_id:
            errors.append("VALUECASE_CLIENT_ID is not configured")

        if not self.client_secret:
            errors.append("VALUECASE_CLIENT_SECRET is not configured")

        if not self.token_url:
            errors.append("VALUECASE_TOKEN_URL is not configured")

        return errors


# Global config instance
config = Config()
