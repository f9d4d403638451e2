"""
auth/provisioning.py -- Account registration.

register() is the only way a user-submitted form becomes an Account. The
bootstrap seeding routine writes to the store directly.

Check order is fixed and observable: blank fields and password length,
then username, then email, then role. The first failing check wins and
nothing is written.

Race handling: the exists_by_* checks are advisory. Two concurrent requests
can both pass them; the UNIQUE constraints in auth/store.py reject the loser
with IntegrityError, which is translated back into the same errors here.

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateEmail, DuplicateUsername, InvalidRole, PasswordTooLong, ProvisioningError
from auth.models import KNOWN_ROLES, MAX_PASSWORD_BYTES, ROLE_PREFIX, Account
from auth.store import AccountStore
from auth.tokens import hash_password
from core.config import get_settings

logger = logging.getLogger("registrar.auth")


def normalize_role(role_name: str) -> str:
    """Turn a submitted role name into a role tag: "teacher" -> "ROLE_TEACHER"."""
    return ROLE_PREFIX + role_name.strip().upper()


def register(
    store: AccountStore,
    username: str,
    email: str,
    password: str,
    role_name: str,
    strict_roles: bool | None = None,
) -> Account:
    """Create a new enabled Account with a single role.

    Args:
        strict_roles: Reject role names outside ADMIN/TEACHER/STUDENT with
                      InvalidRole. None means Settings.strict_role_validation.

    Raises:
        DuplicateUsername, DuplicateEmail, InvalidRole, PasswordTooLong,
        ProvisioningError.
    """
    if strict_roles is None:
        strict_roles = get_settings().strict_role_validation

    username = username.strip()
    email = email.strip()
    if not username or not email or not password or not role_name.strip():
        raise ProvisioningError("Username, email, password and role are required")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordTooLong()

    if store.exists_by_username(username):
        raise DuplicateUsername()
    if store.exists_by_email(email):
        raise DuplicateEmail()

    role = normalize_role(role_name)
    if strict_roles and role not in KNOWN_ROLES:
        raise InvalidRole()

    account = Account(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        roles={role},
        enabled=True,
    )
    try:
        saved = store.save(account)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration. Re-check to name the field.
        if store.exists_by_username(username):
            raise DuplicateUsername() from exc
        raise DuplicateEmail() from exc

    logger.info("Registered account %r with role %s", saved.username, role)
    return saved
