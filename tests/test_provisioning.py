"""
tests/test_provisioning.py -- Account registration rules.

Covers check order (username, then email, then role), role normalization,
strict vs permissive role validation, the bcrypt password byte limit, the
guarantee that a rejected registration writes nothing, and the translation
of a lost uniqueness race back into the same duplicate errors.
"""

from __future__ import annotations

import pytest

from auth.errors import DuplicateEmail, DuplicateUsername, InvalidRole, PasswordTooLong, ProvisioningError
from auth.provisioning import normalize_role, register
from auth.store import AccountStore
from auth.tokens import verify_password


def _alice(store: AccountStore, **overrides):
    kwargs = {"username": "alice", "email": "alice@example.com", "password": "wonderland", "role_name": "STUDENT"}
    kwargs.update(overrides)
    return register(store, **kwargs)


class TestRegister:
    def test_creates_enabled_account_with_one_role(self, account_store: AccountStore) -> None:
        account = _alice(account_store, role_name="TEACHER")
        assert account.id is not None
        assert account.enabled is True
        assert account.roles == {"ROLE_TEACHER"}
        assert account_store.find_by_username("alice") == account

    def test_password_is_stored_hashed(self, account_store: AccountStore) -> None:
        account = _alice(account_store)
        assert account.hashed_password != "wonderland"
        assert verify_password("wonderland", account.hashed_password)

    def test_role_name_is_case_insensitive(self, account_store: AccountStore) -> None:
        assert _alice(account_store, role_name=" admin ").roles == {"ROLE_ADMIN"}

    def test_surrounding_whitespace_is_stripped(self, account_store: AccountStore) -> None:
        account = _alice(account_store, username="  alice ", email=" alice@example.com ")
        assert account.username == "alice"
        assert account.email == "alice@example.com"


class TestRejections:
    def test_duplicate_username(self, account_store: AccountStore) -> None:
        _alice(account_store)
        with pytest.raises(DuplicateUsername) as exc_info:
            _alice(account_store, email="other@example.com")
        assert exc_info.value.message == "Username already exists"
        assert account_store.count() == 1

    def test_duplicate_email(self, account_store: AccountStore) -> None:
        _alice(account_store)
        with pytest.raises(DuplicateEmail) as exc_info:
            _alice(account_store, username="alice2")
        assert exc_info.value.message == "Email already exists"
        assert account_store.count() == 1

    def test_username_checked_before_email(self, account_store: AccountStore) -> None:
        _alice(account_store)
        with pytest.raises(DuplicateUsername):
            _alice(account_store)

    def test_duplicates_checked_before_role(self, account_store: AccountStore) -> None:
        _alice(account_store)
        with pytest.raises(DuplicateEmail):
            _alice(account_store, username="bob", role_name="WIZARD")

    def test_unknown_role_in_strict_mode(self, account_store: AccountStore) -> None:
        with pytest.raises(InvalidRole) as exc_info:
            _alice(account_store, role_name="WIZARD", strict_roles=True)
        assert exc_info.value.message == "Invalid role"
        assert account_store.count() == 0

    def test_unknown_role_accepted_in_permissive_mode(self, account_store: AccountStore) -> None:
        account = _alice(account_store, role_name="librarian", strict_roles=False)
        assert account.roles == {"ROLE_LIBRARIAN"}

    @pytest.mark.parametrize("field", ["username", "email", "password", "role_name"])
    def test_blank_field(self, account_store: AccountStore, field: str) -> None:
        with pytest.raises(ProvisioningError):
            _alice(account_store, **{field: "   " if field != "password" else ""})
        assert account_store.count() == 0

    def test_password_over_72_bytes(self, account_store: AccountStore) -> None:
        with pytest.raises(PasswordTooLong):
            _alice(account_store, password="y" * 73)
        assert account_store.count() == 0

    def test_password_limit_counts_bytes_not_characters(self, account_store: AccountStore) -> None:
        with pytest.raises(PasswordTooLong):
            _alice(account_store, password="\u00e9" * 40)
        account = _alice(account_store, password="\u00e9" * 36)
        assert verify_password("\u00e9" * 36, account.hashed_password)


def _stale_once(monkeypatch, store: AccountStore, method: str) -> None:
    """Make the first call to store.<method> miss, as if a concurrent insert landed just after it."""
    real = getattr(store, method)
    calls = []

    def stale(value: str) -> bool:
        calls.append(value)
        return False if len(calls) == 1 else real(value)

    monkeypatch.setattr(store, method, stale)


class TestConcurrentRegistration:
    def test_lost_race_on_username(self, account_store: AccountStore, monkeypatch) -> None:
        _alice(account_store)
        _stale_once(monkeypatch, account_store, "exists_by_username")
        with pytest.raises(DuplicateUsername):
            _alice(account_store, email="other@example.com")
        assert account_store.count() == 1

    def test_lost_race_on_email(self, account_store: AccountStore, monkeypatch) -> None:
        _alice(account_store)
        _stale_once(monkeypatch, account_store, "exists_by_email")
        with pytest.raises(DuplicateEmail):
            _alice(account_store, username="alice2")
        assert account_store.count() == 1
        assert account_store.find_by_username("alice2") is None


def test_normalize_role() -> None:
    assert normalize_role("teacher") == "ROLE_TEACHER"
    assert normalize_role(" Student ") == "ROLE_STUDENT"
