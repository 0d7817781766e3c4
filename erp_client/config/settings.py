"""Pydantic Settings for the SchoolERP API client.

All environment variables use the SCHOOLERP_ prefix.
Example: SCHOOLERP_API_URL=https://erp.example.org/api, SCHOOLERP_TIMEOUT_SECONDS=5
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """API client configuration validated from environment variables."""

    # Backend
    api_url: str = "http://localhost:5000/api"
    timeout_seconds: float = Field(default=10.0, gt=0)
    with_credentials: bool = True  # Send and keep cookies across calls

    # Session handling
    login_path: str = "/auth"  # Redirect target on 401
    token_store_path: str | None = None  # JSON file; None keeps tokens in memory
    migrate_legacy_keys: bool = False  # authToken/userRole -> token/role on startup

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "SCHOOLERP_"}
