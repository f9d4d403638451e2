"""
tests/test_tokens.py -- Unit tests for password hashing and JWT helpers.

No database, no HTTP. auth/tokens.py is pure functions over bcrypt and jose.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.tokens import create_access_token, decode_access_token, hash_password, verify_password
from core.config import get_settings


class TestPasswordHashing:
    def test_hash_is_not_plaintext(self) -> None:
        digest = hash_password("s3cret-pass")
        assert digest != "s3cret-pass"
        assert digest.startswith("$2")

    def test_same_password_hashes_differently(self) -> None:
        """Fresh salt per hash: two digests differ, both verify."""
        first = hash_password("repeatable")
        second = hash_password("repeatable")
        assert first != second
        assert verify_password("repeatable", first)
        assert verify_password("repeatable", second)

    def test_wrong_password_rejected(self) -> None:
        assert not verify_password("nope", hash_password("right"))

    def test_malformed_digest_is_a_failed_check(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-digest") is False
        assert verify_password("anything", "") is False

    def test_overlong_password_is_a_failed_check(self) -> None:
        digest = hash_password("x" * 72)
        assert verify_password("x" * 72, digest)
        assert verify_password("x" * 73, digest) is False


class TestAccessTokens:
    def test_round_trip_carries_identity(self) -> None:
        token = create_access_token(7, "alice", {"ROLE_TEACHER", "ROLE_ADMIN"}, expire_seconds=60)
        payload = decode_access_token(token)
        assert payload is not None
        assert payload["sub"] == "alice"
        assert payload["user_id"] == 7
        assert payload["roles"] == ["ROLE_ADMIN", "ROLE_TEACHER"]

    def test_tampered_token_is_rejected(self) -> None:
        """Splice another token's payload under alice's signature."""
        header, _, signature = create_access_token(1, "alice", {"ROLE_STUDENT"}).split(".")
        _, forged_payload, _ = create_access_token(1, "mallory", {"ROLE_ADMIN"}).split(".")
        assert decode_access_token(f"{header}.{forged_payload}.{signature}") is None

    def test_expired_token_is_rejected(self) -> None:
        payload = {"sub": "alice", "user_id": 1, "roles": [], "exp": datetime.now(timezone.utc) - timedelta(seconds=5)}
        token = jwt.encode(payload, get_settings().secret_key, algorithm="HS256")
        assert decode_access_token(token) is None

    def test_token_signed_with_other_key_is_rejected(self) -> None:
        payload = {"sub": "alice", "user_id": 1, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
        token = jwt.encode(payload, "x" * 40, algorithm="HS256")
        assert decode_access_token(token) is None

    def test_token_without_user_id_is_rejected(self) -> None:
        payload = {"sub": "alice", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
        token = jwt.encode(payload, get_settings().secret_key, algorithm="HS256")
        assert decode_access_token(token) is None
