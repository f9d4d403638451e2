"""
auth/tokens.py -- Password hashing, JWT session tokens and the auth cookie.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). Every hash gets a
       fresh salt, so two hashes of the same password differ while both
       verify. The cost factor comes from Settings.bcrypt_rounds. The
       _DUMMY_HASH constant lets the principal loader run one bcrypt
       verification even for unknown usernames, so response time does not
       reveal whether a username exists.

  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, username (sub), roles and expiry. Verification returns None
       on any failure -- the caller treats that as anonymous. Roles in the
       token are informational only; authorities are always re-read from the
       credential store when a request is resolved.

Layer rule: no imports from api/, web/ or records/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import MAX_PASSWORD_BYTES
from core.config import get_settings

logger = logging.getLogger("registrar.auth")

_settings = get_settings()

_ALGORITHM = "HS256"
AUTH_COOKIE = "access_token"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt digest of the given plaintext password.

    bcrypt rejects secrets over 72 bytes; register() refuses them before
    they get here.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt digest.

    A malformed or empty digest is a failed verification, not an error, and
    so is a plaintext too long to ever have been hashed.
    """
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("registrar_timing_dummy")


def equalize_timing(plain: str) -> None:
    """Burn one bcrypt verification. Called when there is no real digest to check."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, username: str, roles: set[str] | frozenset[str], expire_seconds: int = 0) -> str:
    """Encode a signed JWT with account identity and expiry.

    Args:
        user_id:        Numeric account ID.
        username:       Stored as the JWT subject claim.
        roles:          Role tags at issue time.
        expire_seconds: Session duration. 0 means Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": username,
        "user_id": user_id,
        "roles": sorted(roles),
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "sub" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(AUTH_COOKIE)
