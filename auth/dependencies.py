"""
auth/dependencies.py -- Resolve the request's Principal and apply the policy.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the web login flow.
  2. Authorization: Bearer <token> header -- API clients.

The token only identifies the account. Authorities and the enabled flag are
always re-read from the credential store, so a role change or a disabled
account takes effect on the next request.

try_get_current_principal() is the soft variant (returns None on failure).
check_access() runs auth/policy.authorize() for the current path and method
and caches the resolved Principal on request.state.
require_access() is the FastAPI router dependency: 401 or Forbidden on denial.

Layer rule: no imports from web/ or records/. fastapi is allowed here because
this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import Forbidden
from auth.models import Principal
from auth.policy import Decision, authorize
from auth.principal import principal_for_account
from auth.tokens import AUTH_COOKIE, decode_access_token


def try_get_current_principal(request: Request) -> Principal | None:
    """Authenticate the request via cookie or Bearer header. Never raises."""
    if hasattr(request.state, "principal"):
        return request.state.principal

    account_store = request.app.state.account_store

    token: str | None = request.cookies.get(AUTH_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    principal: Principal | None = None
    if token:
        payload = decode_access_token(token)
        if payload:
            account = account_store.get_by_id(payload["user_id"])
            if account is not None and account.enabled and account.username == payload["sub"]:
                principal = principal_for_account(account)

    request.state.principal = principal
    return principal


def check_access(request: Request) -> tuple[Decision, Principal | None]:
    """Evaluate the central policy for this request's path and method."""
    principal = try_get_current_principal(request)
    return authorize(principal, request.url.path, request.method), principal


def require_access(request: Request) -> Principal | None:
    """Router-level dependency: 401 unless someone is logged in, Forbidden unless the policy allows.

    Use on every API router:
        router = APIRouter(dependencies=[Depends(require_access)])

    Forbidden is turned into a 403 response by the handler in api/main.py.
    """
    decision, principal = check_access(request)
    if decision is Decision.DENY_REDIRECT_LOGIN:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    if decision is Decision.DENY_FORBIDDEN:
        raise Forbidden()
    return principal


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated."""
    principal = try_get_current_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return principal
