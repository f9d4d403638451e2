"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, almost no logic). Stores and
services do the work; these classes own the domain shape.

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

ROLE_PREFIX = "ROLE_"

ROLE_ADMIN = "ROLE_ADMIN"
ROLE_TEACHER = "ROLE_TEACHER"
ROLE_STUDENT = "ROLE_STUDENT"

# Role names offered on the registration form, in display order.
ROLE_NAMES: tuple[str, ...] = ("STUDENT", "TEACHER", "ADMIN")
KNOWN_ROLES: frozenset[str] = frozenset(ROLE_PREFIX + name for name in ROLE_NAMES)

# bcrypt refuses secrets longer than this many bytes (not characters).
MAX_PASSWORD_BYTES = 72


@dataclass
class Account:
    """An authentication identity.

    roles holds role tags (e.g. "ROLE_ADMIN"), never bare role names.
    hashed_password is always a bcrypt digest once the account is persisted.
    The account knows nothing about any Student/Teacher profile that links
    to it -- the link lives on the profile row.
    """

    username: str
    email: str
    hashed_password: str
    roles: set[str] = field(default_factory=set)
    enabled: bool = True
    id: int | None = None
    created_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class Principal:
    """Runtime view of an authenticated Account for the span of one request.

    authorities carries one entry per role tag, verbatim.
    """

    username: str
    password_hash: str
    enabled: bool
    authorities: frozenset[str]
    account_id: int | None = None

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities

    def has_any_authority(self, *authorities: str) -> bool:
        return bool(self.authorities.intersection(authorities))

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.authorities
