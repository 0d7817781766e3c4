"""Shared test fixtures for the client test suite."""

from __future__ import annotations

import base64
import json
import logging
import os
import time
from collections.abc import Callable, Iterator

import httpx
import pytest

from erp_client.client import AuthenticatedApiClient
from erp_client.config.settings import ClientSettings
from erp_client.errors import ApiError
from erp_client.storage import InMemoryTokenStore


# ---------------------------------------------------------------------------
# Keep the developer's environment out of ClientSettings
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SCHOOLERP_* variables so settings tests see the defaults."""
    for key in list(os.environ):
        if key.startswith("SCHOOLERP_"):
            monkeypatch.delenv(key)


@pytest.fixture
def package_logger() -> Iterator[logging.Logger]:
    """The ``erp_client`` logger, restored after tests that configure it."""
    logger = logging.getLogger("erp_client")
    saved = logger.handlers[:], logger.level, logger.propagate
    yield logger
    logger.handlers[:], logger.level, logger.propagate = saved


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def encode_token(payload: object) -> str:
    """Unsigned JWT-shaped token carrying ``payload``."""
    header = _b64url(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
    body = _b64url(json.dumps(payload).encode())
    return f"{header}.{body}.test-signature"


@pytest.fixture
def make_token() -> Callable[..., str]:
    return encode_token


@pytest.fixture
def valid_token() -> str:
    return encode_token(
        {"id": 7, "schoolId": 3, "role": "school", "email": "office@school.test", "exp": int(time.time()) + 3600}
    )


@pytest.fixture
def expired_token() -> str:
    return encode_token({"id": 7, "schoolId": 3, "role": "school", "exp": int(time.time()) - 3600})


# ---------------------------------------------------------------------------
# Store and client fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def full_session(valid_token: str) -> InMemoryTokenStore:
    """Store populated with every session key, legacy aliases included."""
    return InMemoryTokenStore(
        {
            "token": valid_token,
            "authToken": valid_token,
            "userData": json.dumps({"id": 7, "name": "Test School"}),
            "role": "school",
            "userRole": "school",
        }
    )


@pytest.fixture
def settings() -> ClientSettings:
    """Test settings with safe defaults."""
    return ClientSettings(api_url="http://erp.test/api", timeout_seconds=2.0)


class RecordingHandler:
    """Session-expired handler that remembers every call."""

    def __init__(self) -> None:
        self.calls: list[ApiError] = []

    def __call__(self, error: ApiError) -> None:
        self.calls.append(error)


@pytest.fixture
def expired_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def make_client(
    store: InMemoryTokenStore, expired_handler: RecordingHandler
) -> Callable[..., AuthenticatedApiClient]:
    """Build a client whose transport is the given request handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs: object) -> AuthenticatedApiClient:
        kwargs.setdefault("store", store)
        kwargs.setdefault("on_session_expired", expired_handler)
        return AuthenticatedApiClient(
            "http://erp.test/api",
            transport=httpx.MockTransport(handler),
            **kwargs,  # type: ignore[arg-type]
        )

    return _make

