"""Unit tests for session token inspection."""

from __future__ import annotations

import base64
import time

import pytest

from erp_client.storage import InMemoryTokenStore
from erp_client.token import (
    decode_claims,
    decode_payload,
    describe_session,
    get_role,
    get_school_id,
    is_authenticated,
)


def _store(token: str, **extra: str) -> InMemoryTokenStore:
    return InMemoryTokenStore({"token": token, **extra})


class TestDecodePayload:
    def test_decodes_payload_segment(self, make_token) -> None:
        assert decode_payload(make_token({"role": "school", "schoolId": 3})) == {"role": "school", "schoolId": 3}

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d"])
    def test_wrong_segment_count(self, token: str) -> None:
        assert decode_payload(token) is None

    def test_payload_not_base64(self) -> None:
        assert decode_payload("header.!!!not-base64!!!.sig") is None

    def test_payload_not_json(self) -> None:
        segment = base64.urlsafe_b64encode(b"not json").decode().rstrip("=")
        assert decode_payload(f"h.{segment}.s") is None

    def test_payload_not_object(self, make_token) -> None:
        assert decode_payload(make_token([1, 2, 3])) is None

    def test_handles_unpadded_segment(self, make_token) -> None:
        token = make_token({"email": "a~~~@school.test"})
        assert decode_payload(token) == {"email": "a~~~@school.test"}

    def test_decode_claims(self, make_token) -> None:
        claims = decode_claims(make_token({"userId": 9, "schoolId": 3, "role": "teacher", "section": "B"}))
        assert claims is not None
        assert claims.user_id == 9
        assert claims.school_id == 3
        assert claims.role == "teacher"
        assert claims.model_extra == {"section": "B"}


class TestIsAuthenticated:
    def test_no_token(self) -> None:
        assert is_authenticated(InMemoryTokenStore()) is False

    def test_valid_token(self, valid_token: str) -> None:
        assert is_authenticated(_store(valid_token)) is True

    def test_token_without_exp_is_valid(self, make_token) -> None:
        assert is_authenticated(_store(make_token({"role": "admin"}))) is True

    def test_zero_exp_counts_as_absent(self, make_token) -> None:
        assert is_authenticated(_store(make_token({"exp": 0}))) is True

    def test_expired_token_clears_both_keys(self, expired_token: str) -> None:
        store = InMemoryTokenStore({"token": expired_token, "authToken": expired_token, "role": "school"})

        assert is_authenticated(store) is False
        assert store.snapshot() == {"role": "school"}

    def test_expired_legacy_token_is_cleared(self, expired_token: str) -> None:
        store = InMemoryTokenStore({"authToken": expired_token})

        assert is_authenticated(store) is False
        assert store.snapshot() == {}

    def test_uses_given_clock(self, make_token) -> None:
        token = make_token({"exp": 1_000})
        assert is_authenticated(_store(token), now=999) is True
        assert is_authenticated(_store(token), now=1_000) is True
        assert is_authenticated(_store(token), now=1_001) is False

    def test_malformed_token_is_unauthenticated_and_kept(self) -> None:
        store = _store("not-a-jwt")
        assert is_authenticated(store) is False
        assert store.get("token") == "not-a-jwt"

    def test_non_numeric_exp_fails_closed(self, make_token) -> None:
        assert is_authenticated(_store(make_token({"exp": "tomorrow"}))) is False


class TestGetRole:
    def test_returns_role(self, valid_token: str) -> None:
        assert get_role(_store(valid_token)) == "school"

    def test_missing_role(self, make_token) -> None:
        assert get_role(_store(make_token({"schoolId": 1}))) is None

    def test_empty_role(self, make_token) -> None:
        assert get_role(_store(make_token({"role": ""}))) is None

    def test_non_string_role(self, make_token) -> None:
        assert get_role(_store(make_token({"role": 5}))) is None

    def test_undecodable_token(self) -> None:
        assert get_role(_store("a.b.c")) is None

    def test_no_token(self) -> None:
        assert get_role(InMemoryTokenStore()) is None

    def test_expired_token_still_reports_role(self, expired_token: str) -> None:
        store = _store(expired_token)
        assert get_role(store) == "school"
        assert store.get("token") == expired_token


class TestGetSchoolId:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (3, 3),
            ("12", 12),
            (4.0, 4),
            (0, None),
            ("0", None),
            (True, None),
            ("abc", None),
            (None, None),
            (2.5, None),
        ],
    )
    def test_school_id_values(self, make_token, value: object, expected: int | None) -> None:
        assert get_school_id(_store(make_token({"schoolId": value}))) == expected

    def test_undecodable_token(self) -> None:
        assert get_school_id(_store("x.y.z")) is None

    def test_no_token(self) -> None:
        assert get_school_id(InMemoryTokenStore()) is None


class TestDescribeSession:
    def test_no_token(self) -> None:
        summary = describe_session(InMemoryTokenStore({"role": "school"}))

        assert summary.keys_present == ["role"]
        assert summary.token_prefix is None
        assert summary.issues == ["No token found; user needs to log in"]

    def test_invalid_format(self) -> None:
        summary = describe_session(_store("garbage"))

        assert summary.format_valid is False
        assert summary.issues == ["Invalid token format"]

    def test_valid_session(self, valid_token: str) -> None:
        summary = describe_session(_store(valid_token, userData="{}"))

        assert summary.keys_present == ["token", "userData"]
        assert summary.format_valid is True
        assert summary.token_prefix == valid_token[:20] + "..."
        assert valid_token not in summary.model_dump_json()
        assert summary.claims is not None
        assert summary.claims.school_id == 3
        assert summary.expires_at is not None
        assert summary.is_expired is False
        assert summary.issues == []

    def test_reports_expiry(self, expired_token: str) -> None:
        store = _store(expired_token)
        summary = describe_session(store)

        assert summary.is_expired is True
        assert "Token has expired" in summary.issues
        assert store.get("token") == expired_token

    def test_missing_school_for_non_admin(self, make_token) -> None:
        summary = describe_session(_store(make_token({"role": "teacher", "exp": int(time.time()) + 60})))
        assert "Token missing schoolId for non-admin user" in summary.issues

    def test_non_numeric_exp_is_reported(self, make_token) -> None:
        summary = describe_session(_store(make_token({"role": "admin", "exp": "soon"})))

        assert summary.issues == ["Token exp claim is not numeric"]
        assert summary.expires_at is None
        assert summary.is_expired is False

    def test_admin_without_school_is_fine(self, make_token) -> None:
        summary = describe_session(_store(make_token({"role": "admin"})))
        assert summary.issues == []
        assert summary.expires_at is None
