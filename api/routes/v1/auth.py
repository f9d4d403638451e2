"""
api/routes/v1/auth.py -- Authentication and account management REST endpoints.

Routes:
  POST  /api/v1/auth/login            -- password login; sets JWT cookie
  POST  /api/v1/auth/logout           -- clears cookie; 200
  POST  /api/v1/auth/register         -- self-registration
  GET   /api/v1/auth/me               -- current principal (requires auth)
  GET   /api/v1/auth/accounts         -- list accounts (admin only)
  PATCH /api/v1/auth/accounts/{id}    -- change roles / enabled flag (admin only)

Access is decided by auth/policy.py through the router-level require_access
dependency; no handler repeats a role check.

Security:
  POST /login is rate-limited (Settings.login_rate_limit per IP).
  Login failures return one generic "bad_credentials" error whatever the cause.
  PATCH /accounts/{id} blocks self-disable and removing the last enabled admin.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import (
    AccountPatch,
    AccountResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    ProfileSummary,
    RegisterRequest,
)
from auth.dependencies import get_current_principal, require_access
from auth.errors import DuplicateEmail, DuplicateUsername, ProvisioningError
from auth.models import KNOWN_ROLES, ROLE_ADMIN, Account, Principal
from auth.provisioning import normalize_role, register
from auth.session import LoginFlow
from auth.store import AccountStore
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie
from core.config import get_settings
from records.models import Student
from records.store import RecordsStore

router = APIRouter(dependencies=[Depends(require_access)])

_settings = get_settings()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; set JWT cookie."""
    account_store: AccountStore = request.app.state.account_store
    flow = LoginFlow(account_store)
    principal = flow.submit(body.username, body.password)
    if principal is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": flow.message}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = create_access_token(principal.account_id, principal.username, principal.authorities)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            username=principal.username,
            roles=sorted(principal.authorities),
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout")
def logout(request: Request) -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    principal = request.state.principal
    message = "Logged out."
    if principal is not None:
        flow = LoginFlow.resume(request.app.state.account_store, principal)
        flow.logout()
        message = flow.message
    resp = JSONResponse(content={"message": message})
    clear_auth_cookie(resp)
    return resp


@router.post("/auth/register", response_model=AccountResponse, status_code=201)
def register_account(request: Request, body: RegisterRequest) -> AccountResponse:
    """Create a new account with a single role.

    409 for a duplicate username or email, 422 for an unknown role (strict
    mode), 403 when self-registration is switched off.
    """
    if not _settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    account_store: AccountStore = request.app.state.account_store
    try:
        account = register(account_store, body.username, body.email, body.password, body.role)
    except (DuplicateUsername, DuplicateEmail) as exc:
        raise HTTPException(status_code=409, detail={"code": exc.code, "message": exc.message}) from exc
    except ProvisioningError as exc:
        raise HTTPException(status_code=422, detail={"code": exc.code, "message": exc.message}) from exc
    return _account_to_response(account)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return identity information and the linked profile, if any."""
    records: RecordsStore = request.app.state.records_store
    profile = None
    if principal.account_id is not None:
        found = records.find_profile_for_account(principal.account_id)
        if found is not None:
            profile = ProfileSummary(
                kind="student" if isinstance(found, Student) else "teacher",
                id=found.id,
                name=found.full_name,
            )
    return MeResponse(
        account_id=principal.account_id,
        username=principal.username,
        roles=sorted(principal.authorities),
        profile=profile,
    )


# ---------------------------------------------------------------------------
# Account management (admin only, per policy)
# ---------------------------------------------------------------------------


@router.get("/auth/accounts", response_model=list[AccountResponse])
def list_accounts(request: Request) -> list[AccountResponse]:
    account_store: AccountStore = request.app.state.account_store
    return [_account_to_response(a) for a in account_store.list_accounts()]


@router.patch("/auth/accounts/{account_id}", response_model=AccountResponse)
def update_account(
    request: Request,
    account_id: int,
    body: AccountPatch,
    principal: Principal = Depends(get_current_principal),
) -> AccountResponse:
    """Change an account's roles or enabled flag.

    Prevents:
      - Self-disable (an admin locking themselves out).
      - Leaving no enabled admin (no recovery path without DB access).
    """
    account_store: AccountStore = request.app.state.account_store
    target = account_store.get_by_id(account_id)
    if target is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Account not found."})

    if body.enabled is None and body.roles is None:
        raise HTTPException(status_code=400, detail={"code": "no_changes", "message": "No fields to update."})

    new_roles = set(target.roles)
    if body.roles is not None:
        new_roles = {normalize_role(r.strip().upper().removeprefix("ROLE_")) for r in body.roles}
        unknown = new_roles - KNOWN_ROLES
        if unknown:
            raise HTTPException(
                status_code=422,
                detail={"code": "invalid_role", "message": f"Unknown roles: {', '.join(sorted(unknown))}"},
            )
    new_enabled = target.enabled if body.enabled is None else body.enabled

    if not new_enabled and target.id == principal.account_id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_disable", "message": "You cannot disable your own account."},
        )
    was_active_admin = target.enabled and ROLE_ADMIN in target.roles
    stays_active_admin = new_enabled and ROLE_ADMIN in new_roles
    if was_active_admin and not stays_active_admin and account_store.count_enabled_admins() <= 1:
        raise HTTPException(
            status_code=400,
            detail={"code": "last_admin", "message": "Cannot remove the last enabled admin account."},
        )

    target.roles = new_roles
    target.enabled = new_enabled
    return _account_to_response(account_store.save(target))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _account_to_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        username=account.username,
        email=account.email,
        roles=sorted(account.roles),
        enabled=account.enabled,
        created_at=account.created_at or "",
        last_login=account.last_login,
    )
