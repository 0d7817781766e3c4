"""Session token inspection.

Tokens are JWT-shaped (``header.payload.signature``). Only the payload is
read; signatures are the backend's concern. Every helper fails closed: a
token that cannot be decoded counts as absent, so callers see
"not authenticated", "no role" and "no school" rather than an exception.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from erp_client.models.token import SessionSummary, TokenClaims
from erp_client.storage import (
    SESSION_KEYS,
    TokenStore,
    clear_tokens,
    read_token,
)

logger = logging.getLogger(__name__)

_TOKEN_PREFIX_LENGTH = 20


def decode_payload(token: str) -> dict[str, Any] | None:
    """Decode the payload segment of a three-segment token.

    Returns ``None`` when the token does not have exactly three segments or
    the payload is not base64url-encoded JSON object.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None

    segment = parts[1]
    padded = segment + "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = json.loads(raw)
    except (binascii.Error, UnicodeError, ValueError) as exc:
        logger.warning("Token payload could not be decoded: %s", type(exc).__name__)
        return None

    if not isinstance(payload, dict):
        logger.warning("Token payload is not a JSON object")
        return None
    return payload


def decode_claims(token: str) -> TokenClaims | None:
    """Typed view of ``decode_payload``; ``None`` on any decode failure."""
    payload = decode_payload(token)
    if payload is None:
        return None
    try:
        return TokenClaims.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Token claims have unexpected types: %d error(s)", exc.error_count())
        return None


def _expiry(payload: dict[str, Any]) -> float | None:
    """Return ``exp`` in epoch seconds, ``None`` if absent.

    Raises ``ValueError`` for an ``exp`` that is present but not a number.
    """
    exp = payload.get("exp")
    if exp is None or exp == 0:
        return None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise ValueError("exp claim is not numeric")
    try:
        return float(exp)
    except OverflowError:
        raise ValueError("exp claim is out of range") from None


def is_expired(payload: dict[str, Any], now: float | None = None) -> bool:
    """True if the payload carries an ``exp`` earlier than ``now`` (epoch seconds)."""
    exp = _expiry(payload)
    if exp is None:
        return False
    now_ms = (time.time() if now is None else now) * 1000
    return exp * 1000 < now_ms


def is_authenticated(store: TokenStore, now: float | None = None) -> bool:
    """Whether the stored token is present, well-formed and unexpired.

    An expired token is deleted from both token keys before returning False.
    """
    token = read_token(store)
    if not token:
        return False

    payload = decode_payload(token)
    if payload is None:
        return False

    try:
        expired = is_expired(payload, now)
    except ValueError:
        logger.warning("Token has a malformed exp claim, treating as unauthenticated")
        return False

    if expired:
        logger.info("Stored token has expired, clearing it")
        clear_tokens(store)
        return False
    return True


def get_role(store: TokenStore) -> str | None:
    """Role claim of the stored token, or ``None``."""
    token = read_token(store)
    if not token:
        return None
    payload = decode_payload(token)
    if payload is None:
        return None
    role = payload.get("role")
    return role if isinstance(role, str) and role else None


def get_school_id(store: TokenStore) -> int | None:
    """School id claim of the stored token, or ``None``.

    Integer-valued strings are accepted; zero, booleans and anything else
    non-integral read as absent.
    """
    token = read_token(store)
    if not token:
        return None
    payload = decode_payload(token)
    if payload is None:
        return None
    return _as_school_id(payload.get("schoolId"))


def _as_school_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    if isinstance(value, float) and value.is_integer():
        return int(value) or None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value) or None
    return None


def describe_session(store: TokenStore, now: float | None = None) -> SessionSummary:
    """Diagnostic summary of the stored session.

    Reports which session keys are set, the decoded claims, expiry and known
    problems (for instance a non-admin token with no school scope). Never
    modifies the store.
    """
    summary = SessionSummary(
        keys_present=[key for key in SESSION_KEYS if store.get(key)],
    )

    token = read_token(store)
    if not token:
        summary.issues.append("No token found; user needs to log in")
        return summary

    summary.token_prefix = token[:_TOKEN_PREFIX_LENGTH] + "..."
    payload = decode_payload(token)
    if payload is None:
        summary.issues.append("Invalid token format")
        return summary

    summary.format_valid = True
    summary.claims = decode_claims(token)

    try:
        exp = _expiry(payload)
    except ValueError as exc:
        summary.issues.append(f"Token {exc}")
        exp = None
    if exp is not None:
        try:
            summary.expires_at = datetime.fromtimestamp(exp, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            summary.issues.append("Token exp claim is out of range")
        summary.is_expired = is_expired(payload, now)
        if summary.is_expired:
            summary.issues.append("Token has expired")

    if not payload.get("schoolId") and payload.get("role") != "admin":
        summary.issues.append("Token missing schoolId for non-admin user")

    return summary
