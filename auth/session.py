"""
auth/session.py -- The login state machine.

    ANONYMOUS --submit--> AUTHENTICATING --ok--> AUTHENTICATED --logout--> ANONYMOUS
                                        \\--fail--> DENIED --submit--> (restart)

A LoginFlow lives for one request. Nothing is shared between requests; the
session itself travels in the signed cookie issued by the web/API layer.

DENIED always carries the same message whatever went wrong (unknown user,
wrong password, disabled account). The real reason is logged at INFO.
"""

from __future__ import annotations

import logging
from enum import Enum

from auth.errors import BAD_CREDENTIALS_MESSAGE, AuthenticationError, InvalidTransition
from auth.models import Principal
from auth.principal import authenticate
from auth.store import AccountStore

logger = logging.getLogger("registrar.auth")

LOGGED_OUT_MESSAGE = "You have been logged out successfully"


class LoginState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    DENIED = "denied"


class LoginFlow:
    """Drive one login or logout attempt.

    Usage:
        flow = LoginFlow(store)
        principal = flow.submit(username, password)
        if principal is None:
            show(flow.message)
    """

    def __init__(self, store: AccountStore) -> None:
        self.store = store
        self.state = LoginState.ANONYMOUS
        self.principal: Principal | None = None
        self.message: str | None = None

    @classmethod
    def resume(cls, store: AccountStore, principal: Principal) -> "LoginFlow":
        """Start a flow for a principal already authenticated by its session token."""
        flow = cls(store)
        flow.state = LoginState.AUTHENTICATED
        flow.principal = principal
        return flow

    def submit(self, username: str, password: str) -> Principal | None:
        """Attempt authentication. Returns the Principal, or None when DENIED."""
        if self.state is LoginState.DENIED:
            self.state = LoginState.ANONYMOUS
            self.message = None
        if self.state is not LoginState.ANONYMOUS:
            raise InvalidTransition(f"Cannot submit credentials while {self.state.value}")

        self.state = LoginState.AUTHENTICATING
        try:
            principal = authenticate(self.store, username, password)
        except AuthenticationError as exc:
            logger.info("Login denied (%s): %s", type(exc).__name__, exc)
            self.state = LoginState.DENIED
            self.principal = None
            self.message = BAD_CREDENTIALS_MESSAGE
            return None

        self.state = LoginState.AUTHENTICATED
        self.principal = principal
        self.message = None
        if principal.account_id is not None:
            self.store.update_last_login(principal.account_id)
        logger.info("Login succeeded for %r", principal.username)
        return principal

    def logout(self) -> None:
        if self.state is not LoginState.AUTHENTICATED:
            raise InvalidTransition(f"Cannot log out while {self.state.value}")
        logger.info("Logout for %r", self.principal.username if self.principal else None)
        self.state = LoginState.ANONYMOUS
        self.principal = None
        self.message = LOGGED_OUT_MESSAGE
