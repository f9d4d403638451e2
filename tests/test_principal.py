"""
tests/test_principal.py -- Principal loading and credential checks.
"""

from __future__ import annotations

import pytest

import auth.principal as principal_module
from auth.errors import BAD_CREDENTIALS_MESSAGE, AccountDisabled, AuthenticationError, BadPassword, PrincipalNotFound
from auth.models import Account
from auth.principal import authenticate, load_principal
from auth.store import AccountStore
from auth.tokens import hash_password


@pytest.fixture
def store(account_store: AccountStore) -> AccountStore:
    account_store.save(
        Account(
            username="carol",
            email="carol@example.com",
            hashed_password=hash_password("correct horse"),
            roles={"ROLE_TEACHER", "ROLE_ADMIN"},
        )
    )
    account_store.save(
        Account(
            username="dave",
            email="dave@example.com",
            hashed_password=hash_password("battery staple"),
            roles={"ROLE_STUDENT"},
            enabled=False,
        )
    )
    return account_store


class TestLoadPrincipal:
    def test_authorities_mirror_roles(self, store: AccountStore) -> None:
        principal = load_principal(store, "carol")
        assert principal.authorities == frozenset({"ROLE_TEACHER", "ROLE_ADMIN"})
        assert principal.is_admin
        assert principal.has_authority("ROLE_TEACHER")
        assert not principal.has_authority("ROLE_STUDENT")

    def test_disabled_account_loads_with_flag(self, store: AccountStore) -> None:
        assert load_principal(store, "dave").enabled is False

    def test_unknown_username(self, store: AccountStore) -> None:
        with pytest.raises(PrincipalNotFound):
            load_principal(store, "nobody")

    def test_lookup_is_exact(self, store: AccountStore) -> None:
        with pytest.raises(PrincipalNotFound):
            load_principal(store, "Carol")


class TestAuthenticate:
    def test_valid_credentials(self, store: AccountStore) -> None:
        principal = authenticate(store, "carol", "correct horse")
        assert principal.username == "carol"
        assert principal.account_id is not None

    def test_wrong_password(self, store: AccountStore) -> None:
        with pytest.raises(BadPassword):
            authenticate(store, "carol", "wrong")

    def test_disabled_account_with_right_password(self, store: AccountStore) -> None:
        with pytest.raises(AccountDisabled):
            authenticate(store, "dave", "battery staple")

    def test_disabled_account_with_wrong_password(self, store: AccountStore) -> None:
        """Password is checked first, so a disabled account leaks nothing extra."""
        with pytest.raises(BadPassword):
            authenticate(store, "dave", "wrong")

    def test_unknown_user_still_runs_one_hash_check(self, store: AccountStore, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr(principal_module, "equalize_timing", lambda plain: calls.append(plain))
        with pytest.raises(PrincipalNotFound):
            authenticate(store, "nobody", "guess")
        assert calls == ["guess"]

    @pytest.mark.parametrize(
        "username, password",
        [("nobody", "x"), ("carol", "wrong"), ("dave", "battery staple")],
    )
    def test_every_failure_has_the_same_public_message(self, store: AccountStore, username: str, password: str) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            authenticate(store, username, password)
        assert exc_info.value.public_message == BAD_CREDENTIALS_MESSAGE
