"""
auth/policy.py -- Central authorization rule table and decision function.

Every web page handler and every API router calls authorize() before it
touches a records collaborator. Handlers never carry their own role checks;
the whole policy is this one table, so it can be read and tested without a
running server.

Pattern syntax:
  "*"   matches exactly one path segment.
  "**"  matches zero or more trailing segments (only valid as the last segment).

Evaluation:
  1. Rules are sorted most-specific-first once, at import time. Specificity is
     (literal segments, total segments, no trailing "**"). Ties keep table order.
  2. The first rule whose pattern and method class match governs.
  3. No match -> authenticated required, no specific role.

Decisions:
  ALLOW                -- go ahead.
  DENY_REDIRECT_LOGIN  -- nobody is logged in ("who are you?").
  DENY_FORBIDDEN       -- logged in, but lacking every required authority
                          ("you may not"). Never downgraded to a redirect.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.models import ROLE_ADMIN, ROLE_TEACHER, Principal


class Access(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ANY_ROLE = "any_role"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY_FORBIDDEN = "deny_forbidden"
    DENY_REDIRECT_LOGIN = "deny_redirect_login"


@dataclass(frozen=True)
class Rule:
    pattern: str
    access: Access
    roles: frozenset[str] = frozenset()
    methods: frozenset[str] | None = None  # None = any method

    def __post_init__(self) -> None:
        segments = _split(self.pattern)
        if "**" in segments[:-1]:
            raise ValueError(f"'**' must be the last segment: {self.pattern!r}")
        if self.access is Access.ANY_ROLE and not self.roles:
            raise ValueError(f"Role rule without roles: {self.pattern!r}")

    @property
    def specificity(self) -> tuple[int, int, int]:
        segments = _split(self.pattern)
        literal = sum(1 for s in segments if s not in ("*", "**"))
        fixed = sum(1 for s in segments if s != "**")
        open_ended = 1 if segments and segments[-1] == "**" else 0
        return literal, fixed, 1 - open_ended

    def matches(self, path: str, method: str) -> bool:
        if self.methods is not None and method not in self.methods:
            return False
        return _match(_split(self.pattern), _split(path))


def _split(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def _match(pattern: list[str], path: list[str]) -> bool:
    for i, seg in enumerate(pattern):
        if seg == "**":
            return True
        if i >= len(path):
            return False
        if seg != "*" and seg != path[i]:
            return False
    return len(pattern) == len(path)


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

_FORM = frozenset({"GET", "HEAD", "POST"})
_STAFF = frozenset({ROLE_TEACHER, ROLE_ADMIN})
_ADMIN = frozenset({ROLE_ADMIN})


def _public(pattern: str, methods: frozenset[str] | None = None) -> Rule:
    return Rule(pattern, Access.PUBLIC, methods=methods)


def _authenticated(pattern: str) -> Rule:
    return Rule(pattern, Access.AUTHENTICATED)


def _roles(pattern: str, roles: frozenset[str]) -> Rule:
    return Rule(pattern, Access.ANY_ROLE, roles)


_RULES: tuple[Rule, ...] = (
    # Web: login / registration
    _public("/login", _FORM),
    _public("/register", _FORM),
    _public("/logout"),
    # Web: students -- everyone logged in may browse, staff may change
    _authenticated("/student/list"),
    _authenticated("/student/view/*"),
    _roles("/student/create", _STAFF),
    _roles("/student/edit/*", _STAFF),
    _roles("/student/delete/*", _STAFF),
    # Web: teachers / departments -- staff may browse, admins may change
    _roles("/teacher/**", _STAFF),
    _roles("/teacher/create", _ADMIN),
    _roles("/teacher/edit/*", _ADMIN),
    _roles("/teacher/delete/*", _ADMIN),
    _roles("/department/**", _STAFF),
    _roles("/department/create", _ADMIN),
    _roles("/department/edit/*", _ADMIN),
    _roles("/department/delete/*", _ADMIN),
    # Web: courses -- staff only, all operations
    _roles("/course/**", _STAFF),
    # JSON API
    _public("/api/v1/health"),
    _public("/api/v1/auth/login"),
    _public("/api/v1/auth/logout"),
    _public("/api/v1/auth/register"),
    _roles("/api/v1/auth/accounts/**", _ADMIN),
    _authenticated("/api/v1/students/**"),
    _roles("/api/v1/teachers/**", _STAFF),
    _roles("/api/v1/departments/**", _STAFF),
    _roles("/api/v1/courses/**", _STAFF),
)

RULES: tuple[Rule, ...] = tuple(sorted(_RULES, key=lambda r: r.specificity, reverse=True))

DEFAULT_RULE = Rule("/**", Access.AUTHENTICATED)


# ---------------------------------------------------------------------------
# Decision function
# ---------------------------------------------------------------------------


def match_rule(path: str, method: str = "GET") -> Rule:
    """Return the rule governing (path, method), or DEFAULT_RULE."""
    method = method.upper()
    for rule in RULES:
        if rule.matches(path, method):
            return rule
    return DEFAULT_RULE


def authorize(principal: Principal | None, path: str, method: str = "GET") -> Decision:
    """Decide whether principal may perform method on path.

    A disabled principal is treated as anonymous.
    """
    rule = match_rule(path, method)
    if rule.access is Access.PUBLIC:
        return Decision.ALLOW
    if principal is None or not principal.enabled:
        return Decision.DENY_REDIRECT_LOGIN
    if rule.access is Access.AUTHENTICATED:
        return Decision.ALLOW
    if principal.has_any_authority(*rule.roles):
        return Decision.ALLOW
    return Decision.DENY_FORBIDDEN
