"""
tests/test_session.py -- The LoginFlow state machine.
"""

from __future__ import annotations

import pytest

from auth.errors import BAD_CREDENTIALS_MESSAGE, InvalidTransition
from auth.models import Account
from auth.session import LOGGED_OUT_MESSAGE, LoginFlow, LoginState
from auth.store import AccountStore
from auth.tokens import hash_password


@pytest.fixture
def store(account_store: AccountStore) -> AccountStore:
    account_store.save(
        Account(username="erin", email="erin@example.com", hashed_password=hash_password("pw-erin"), roles={"ROLE_STUDENT"})
    )
    account_store.save(
        Account(
            username="frank",
            email="frank@example.com",
            hashed_password=hash_password("pw-frank"),
            roles={"ROLE_STUDENT"},
            enabled=False,
        )
    )
    return account_store


class TestSubmit:
    def test_starts_anonymous(self, store: AccountStore) -> None:
        flow = LoginFlow(store)
        assert flow.state is LoginState.ANONYMOUS
        assert flow.principal is None

    def test_success_reaches_authenticated(self, store: AccountStore) -> None:
        flow = LoginFlow(store)
        principal = flow.submit("erin", "pw-erin")
        assert principal is not None
        assert flow.state is LoginState.AUTHENTICATED
        assert flow.principal == principal
        assert flow.message is None

    def test_success_stamps_last_login(self, store: AccountStore) -> None:
        assert store.find_by_username("erin").last_login is None
        LoginFlow(store).submit("erin", "pw-erin")
        assert store.find_by_username("erin").last_login is not None

    @pytest.mark.parametrize("username, password", [("erin", "bad"), ("ghost", "pw-erin"), ("frank", "pw-frank")])
    def test_failure_reaches_denied_with_generic_message(self, store: AccountStore, username: str, password: str) -> None:
        flow = LoginFlow(store)
        assert flow.submit(username, password) is None
        assert flow.state is LoginState.DENIED
        assert flow.message == BAD_CREDENTIALS_MESSAGE
        assert flow.principal is None

    def test_denied_can_retry(self, store: AccountStore) -> None:
        flow = LoginFlow(store)
        flow.submit("erin", "bad")
        assert flow.submit("erin", "pw-erin") is not None
        assert flow.state is LoginState.AUTHENTICATED

    def test_submit_while_authenticated_is_rejected(self, store: AccountStore) -> None:
        flow = LoginFlow(store)
        flow.submit("erin", "pw-erin")
        with pytest.raises(InvalidTransition):
            flow.submit("erin", "pw-erin")


class TestLogout:
    def test_logout_returns_to_anonymous(self, store: AccountStore) -> None:
        flow = LoginFlow(store)
        flow.submit("erin", "pw-erin")
        flow.logout()
        assert flow.state is LoginState.ANONYMOUS
        assert flow.principal is None
        assert flow.message == LOGGED_OUT_MESSAGE

    def test_logout_when_anonymous_is_rejected(self, store: AccountStore) -> None:
        with pytest.raises(InvalidTransition):
            LoginFlow(store).logout()

    def test_resume_then_logout(self, store: AccountStore) -> None:
        principal = LoginFlow(store).submit("erin", "pw-erin")
        flow = LoginFlow.resume(store, principal)
        assert flow.state is LoginState.AUTHENTICATED
        flow.logout()
        assert flow.message == LOGGED_OUT_MESSAGE
