"""Session-expired hooks.

When the backend answers 401 the client clears the stored session and hands
the resulting ``ApiError`` to a ``SessionExpiredHandler`` supplied by the
hosting application. A web shell redirects to its login page, a CLI prints a
hint, a test records the call. The client itself touches no browser or UI API.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from erp_client.config.settings import ClientSettings
from erp_client.errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_PATH = "/auth"
AUTH_PATH_MARKERS: tuple[str, ...] = ("/login", "/auth")


class SessionExpiredHandler(Protocol):
    """Called once per request that fails authentication."""

    def __call__(self, error: ApiError) -> None: ...


def log_session_expired(error: ApiError) -> None:
    """Default handler: record the event and leave navigation to the caller."""
    logger.warning("Session expired: %s", error.message, extra={"error_code": error.code.value})


class LoginRedirectHandler:
    """Send the user to the login route unless they are already on an auth page.

    Parameters
    ----------
    current_path:
        Returns the location the user is on (e.g. the router's path).
    navigate:
        Moves the user to the given path.
    login_path:
        Redirect target (default ``/auth``).
    auth_path_markers:
        Substrings identifying auth pages; a current path containing any of
        them suppresses the redirect so a failing login page cannot loop.
    """

    def __init__(
        self,
        current_path: Callable[[], str],
        navigate: Callable[[str], None],
        login_path: str = DEFAULT_LOGIN_PATH,
        auth_path_markers: Sequence[str] = AUTH_PATH_MARKERS,
    ) -> None:
        self._current_path = current_path
        self._navigate = navigate
        self._login_path = login_path
        self._auth_path_markers = tuple(auth_path_markers)

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        current_path: Callable[[], str],
        navigate: Callable[[str], None],
    ) -> LoginRedirectHandler:
        """Handler redirecting to the configured ``login_path``."""
        return cls(current_path, navigate, login_path=settings.login_path)

    @property
    def login_path(self) -> str:
        return self._login_path

    def is_auth_path(self, path: str) -> bool:
        return any(marker in path for marker in self._auth_path_markers)

    def __call__(self, error: ApiError) -> None:
        path = self._current_path()
        if self.is_auth_path(path):
            logger.debug("Session expired on auth path %s, not redirecting", path)
            return
        logger.warning("Authentication failed, redirecting to %s", self._login_path)
        self._navigate(self._login_path)
