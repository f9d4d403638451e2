"""
auth/principal.py -- Resolve usernames and credentials to Principals.

load_principal() is a pure read. authenticate() adds password and enabled
checks and always costs exactly one bcrypt verification, whether the
username exists or not, so timing does not reveal which usernames exist.

The three AuthenticationError subclasses exist for logging only. Callers must
show AuthenticationError.public_message, which is identical for all of them.

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

from auth.errors import AccountDisabled, BadPassword, PrincipalNotFound
from auth.models import Account, Principal
from auth.store import AccountStore
from auth.tokens import equalize_timing, verify_password


def principal_for_account(account: Account) -> Principal:
    return Principal(
        username=account.username,
        password_hash=account.hashed_password,
        enabled=account.enabled,
        authorities=frozenset(account.roles),
        account_id=account.id,
    )


def load_principal(store: AccountStore, username: str) -> Principal:
    """Return the Principal for username (exact match). Raises PrincipalNotFound."""
    account = store.find_by_username(username)
    if account is None:
        raise PrincipalNotFound(f"No account named {username!r}")
    return principal_for_account(account)


def authenticate(store: AccountStore, username: str, password: str) -> Principal:
    """Verify a username/password pair.

    Raises PrincipalNotFound, BadPassword or AccountDisabled. The enabled
    flag is checked after the password so a disabled account costs the same
    as any other.
    """
    try:
        principal = load_principal(store, username)
    except PrincipalNotFound:
        equalize_timing(password)
        raise
    if not verify_password(password, principal.password_hash):
        raise BadPassword(f"Wrong password for {username!r}")
    if not principal.enabled:
        raise AccountDisabled(f"Account {username!r} is disabled")
    return principal
