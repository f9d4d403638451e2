"""
web/routes.py -- Jinja2 template routes for the Registrar web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same account store, same records store) but return HTML instead of
JSON.

Every handler starts with:
    if denied := _guard(request):
        return denied
_guard asks auth/policy.authorize() about the current path and method. The
handlers themselves know nothing about roles.

Route registration order matters. The fixed auth pages are registered before
the generic /{kind}/... CRUD pages.

Routes:
  GET  /login                      -- login form (?error, ?logout, ?registered)
  POST /login                      -- handle password login
  POST /logout                     -- clear cookie, redirect /login?logout=true
  GET  /register                   -- registration form
  POST /register                   -- handle registration
  GET  /                           -- redirect to /dashboard
  GET  /dashboard                  -- principal summary
  GET  /access-denied              -- access-denied page
  GET  /{kind}/list                -- kind in student, teacher, department, course
  GET  /{kind}/view/{id}
  GET  /{kind}/create   POST /{kind}/create
  GET  /{kind}/edit/{id} POST /{kind}/edit/{id}
  GET  /{kind}/delete/{id}     -- confirmation page
  POST /{kind}/delete/{id}
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import IntegrityError

from auth.dependencies import check_access, try_get_current_principal
from auth.errors import BAD_CREDENTIALS_MESSAGE, ProvisioningError
from auth.models import ROLE_NAMES
from auth.policy import Decision, authorize
from auth.provisioning import register
from auth.session import LOGGED_OUT_MESSAGE, LoginFlow
from auth.store import AccountStore
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie
from core.config import get_settings
from records.models import Course, Department, Student, Teacher
from records.store import ProfileLinkError, RecordsStore

logger = logging.getLogger("registrar.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_settings = get_settings()

REGISTERED_MESSAGE = "Registration successful. Please log in."


# ---------------------------------------------------------------------------
# Access helpers
# ---------------------------------------------------------------------------


def _safe_next(next_url: Optional[str], default: str = "/dashboard") -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative "//host" targets, which would
    send the user off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return default


def _guard(request: Request) -> Optional[Response]:
    """Consult the access policy for this request.

    Returns None when allowed, a 302 to /login when nobody is logged in, or
    the access-denied page (403) when the principal lacks the required role.
    """
    decision, principal = check_access(request)
    if decision is Decision.DENY_REDIRECT_LOGIN:
        return RedirectResponse(f"/login?next={quote(request.url.path)}", status_code=302)
    if decision is Decision.DENY_FORBIDDEN:
        logger.info("Forbidden: %s %s for %r", request.method, request.url.path, principal.username)
        return _render(request, "access_denied.html", {}, status_code=403)
    return None


def _can(request: Request, path: str, method: str = "GET") -> bool:
    """Template helper: would the current principal be allowed to follow this link?"""
    return authorize(try_get_current_principal(request), path, method) is Decision.ALLOW


def _render(request: Request, name: str, context: dict, status_code: int = 200) -> HTMLResponse:
    context = {"principal": try_get_current_principal(request), "can": lambda path: _can(request, path), **context}
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _not_found(request: Request, what: str) -> HTMLResponse:
    return _render(request, "not_found.html", {"what": what}, status_code=404)


# ---------------------------------------------------------------------------
# Login / logout / registration
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> Response:
    """Render the login page. Query flags select a fixed message; their values are ignored."""
    if denied := _guard(request):
        return denied
    if try_get_current_principal(request) is not None:
        return RedirectResponse("/dashboard", status_code=302)

    params = request.query_params
    context = {
        "error": BAD_CREDENTIALS_MESSAGE if "error" in params else None,
        "message": LOGGED_OUT_MESSAGE if "logout" in params else (REGISTERED_MESSAGE if "registered" in params else None),
        "next": _safe_next(params.get("next"), default=""),
    }
    return _render(request, "login.html", context)


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
) -> Response:
    """Handle username/password login form submission."""
    if denied := _guard(request):
        return denied
    account_store: AccountStore = request.app.state.account_store
    next_param = request.query_params.get("next")

    flow = LoginFlow(account_store)
    principal = flow.submit(username.strip(), password)
    if principal is None:
        target = "/login?error=true"
        if next_param:
            target += f"&next={quote(_safe_next(next_param))}"
        return RedirectResponse(target, status_code=302)

    token = create_access_token(principal.account_id, principal.username, principal.authorities)
    resp = RedirectResponse(_safe_next(next_param), status_code=302)
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout")
def logout(request: Request) -> Response:
    """Clear the JWT cookie and redirect to the login page."""
    if denied := _guard(request):
        return denied
    principal = try_get_current_principal(request)
    if principal is not None:
        LoginFlow.resume(request.app.state.account_store, principal).logout()
    resp = RedirectResponse("/login?logout=true", status_code=302)
    clear_auth_cookie(resp)
    return resp


@router.get("/register", response_class=HTMLResponse)
def register_form(request: Request) -> Response:
    if denied := _guard(request):
        return denied
    if not _settings.self_registration_enabled:
        return _not_found(request, "Registration")
    return _render(request, "register.html", {"roles": ROLE_NAMES, "form": {}})


@router.post("/register", response_class=HTMLResponse)
def register_post(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    role: str = Form(""),
) -> Response:
    """Create an account; duplicates re-render the form with the reason."""
    if denied := _guard(request):
        return denied
    if not _settings.self_registration_enabled:
        return _not_found(request, "Registration")
    account_store: AccountStore = request.app.state.account_store
    try:
        register(account_store, username, email, password, role)
    except ProvisioningError as exc:
        return _render(
            request,
            "register.html",
            {"roles": ROLE_NAMES, "error": exc.message, "form": {"username": username, "email": email, "role": role}},
        )
    return RedirectResponse("/login?registered=true", status_code=302)


# ---------------------------------------------------------------------------
# Dashboard / access denied
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> Response:
    if denied := _guard(request):
        return denied
    return RedirectResponse("/dashboard", status_code=302)


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> Response:
    if denied := _guard(request):
        return denied
    principal = try_get_current_principal(request)
    records: RecordsStore = request.app.state.records_store
    profile = records.find_profile_for_account(principal.account_id) if principal.account_id else None
    counts = {kind: records.count(view.model) for kind, view in _VIEWS.items()}
    return _render(
        request,
        "dashboard.html",
        {
            "username": principal.username,
            "roles": sorted(principal.authorities),
            "profile": profile,
            "profile_kind": _kind_of(profile) if profile else None,
            "counts": counts,
        },
    )


@router.get("/access-denied", response_class=HTMLResponse)
def access_denied(request: Request) -> Response:
    if denied := _guard(request):
        return denied
    return _render(request, "access_denied.html", {})


# ---------------------------------------------------------------------------
# CRUD page descriptions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Field:
    name: str
    label: str
    type: str = "text"  # text | email | int | textarea | department | teacher | account
    required: bool = True

    @property
    def form_name(self) -> str:
        # Linked accounts are entered by username, stored by id.
        return "account_username" if self.type == "account" else self.name


@dataclass(frozen=True)
class _View:
    model: type
    title: str
    singular: str
    fields: tuple[_Field, ...]
    columns: tuple[tuple[str, str], ...]  # (label, field name) on the list page


_PERSON_FIELDS = (
    _Field("first_name", "First name"),
    _Field("last_name", "Last name"),
    _Field("email", "Email", "email"),
)

_VIEWS: dict[str, _View] = {
    "student": _View(
        model=Student,
        title="Students",
        singular="student",
        fields=_PERSON_FIELDS
        + (
            _Field("student_id", "Student ID"),
            _Field("phone", "Phone", required=False),
            _Field("department_id", "Department", "department", required=False),
            _Field("account_id", "Linked account", "account", required=False),
        ),
        columns=(("Student ID", "student_id"), ("First name", "first_name"), ("Last name", "last_name"), ("Email", "email")),
    ),
    "teacher": _View(
        model=Teacher,
        title="Teachers",
        singular="teacher",
        fields=_PERSON_FIELDS
        + (
            _Field("employee_id", "Employee ID"),
            _Field("phone", "Phone", required=False),
            _Field("department_id", "Department", "department", required=False),
            _Field("account_id", "Linked account", "account", required=False),
        ),
        columns=(("Employee ID", "employee_id"), ("First name", "first_name"), ("Last name", "last_name"), ("Email", "email")),
    ),
    "department": _View(
        model=Department,
        title="Departments",
        singular="department",
        fields=(
            _Field("name", "Name"),
            _Field("description", "Description", "textarea", required=False),
        ),
        columns=(("Name", "name"), ("Description", "description")),
    ),
    "course": _View(
        model=Course,
        title="Courses",
        singular="course",
        fields=(
            _Field("course_code", "Course code"),
            _Field("name", "Name"),
            _Field("description", "Description", "textarea", required=False),
            _Field("credits", "Credits", "int", required=False),
            _Field("department_id", "Department", "department", required=False),
            _Field("teacher_id", "Teacher", "teacher", required=False),
        ),
        columns=(("Code", "course_code"), ("Name", "name"), ("Credits", "credits")),
    ),
}


def _kind_of(record) -> str:
    return next(kind for kind, view in _VIEWS.items() if isinstance(record, view.model))


def _form_context(request: Request, kind: str, view: _View, values: dict, errors: list[str], action: str) -> dict:
    records: RecordsStore = request.app.state.records_store
    return {
        "kind": kind,
        "view": view,
        "values": values,
        "errors": errors,
        "action": action,
        "departments": records.list_records(Department),
        "teachers": records.list_records(Teacher),
    }


def _record_to_form(request: Request, view: _View, record) -> dict:
    values = {}
    for f in view.fields:
        value = getattr(record, f.name)
        if f.type == "account":
            account = request.app.state.account_store.get_by_id(value) if value else None
            value = account.username if account else ""
        values[f.name] = "" if value is None else str(value)
    return values


def _parse_form(request: Request, view: _View, form) -> tuple[dict, dict, list[str]]:
    """Return (raw values for re-rendering, typed values for the record, errors)."""
    account_store: AccountStore = request.app.state.account_store
    raw: dict[str, str] = {}
    typed: dict = {}
    errors: list[str] = []
    for f in view.fields:
        value = str(form.get(f.form_name, "")).strip()
        raw[f.name] = value
        if not value:
            if f.required:
                errors.append(f"{f.label} is required.")
            typed[f.name] = None
            continue
        if f.type in ("int", "department", "teacher"):
            try:
                typed[f.name] = int(value)
            except ValueError:
                errors.append(f"{f.label} must be a number.")
        elif f.type == "account":
            account = account_store.find_by_username(value)
            if account is None:
                errors.append(f"No account named {value!r}.")
            else:
                typed[f.name] = account.id
        elif f.type == "email" and "@" not in value:
            errors.append(f"{f.label} must be an email address.")
        else:
            typed[f.name] = value
    return raw, typed, errors


async def _save_from_form(request: Request, kind: str, view: _View, record_id: Optional[int]) -> Response:
    records: RecordsStore = request.app.state.records_store
    action = f"/{kind}/edit/{record_id}" if record_id is not None else f"/{kind}/create"
    raw, typed, errors = _parse_form(request, view, await request.form())
    if not errors:
        try:
            records.save_record(view.model(**typed, id=record_id))
        except IntegrityError:
            errors.append(f"Another {view.singular} already uses one of these unique values.")
        except ProfileLinkError as exc:
            errors.append(str(exc))
        else:
            return RedirectResponse(f"/{kind}/list", status_code=302)
    return _render(request, "records/form.html", _form_context(request, kind, view, raw, errors, action))


# ---------------------------------------------------------------------------
# CRUD pages
#
# record_id arrives as a plain string and is parsed after _guard, so an
# anonymous request for a malformed id still gets the login redirect.
# ---------------------------------------------------------------------------


def _parse_id(record_id: str) -> Optional[int]:
    try:
        return int(record_id)
    except ValueError:
        return None


def _lookup(request: Request, kind: str, record_id: str):
    """Return (view, record), or (None, 404 response) for an unknown kind or id."""
    view = _VIEWS.get(kind)
    if view is None:
        return None, _not_found(request, "Page")
    parsed = _parse_id(record_id)
    item = request.app.state.records_store.get_record(view.model, parsed) if parsed is not None else None
    if item is None:
        return None, _not_found(request, view.singular.capitalize())
    return view, item


@router.get("/{kind}/list", response_class=HTMLResponse)
def record_list(request: Request, kind: str) -> Response:
    if denied := _guard(request):
        return denied
    view = _VIEWS.get(kind)
    if view is None:
        return _not_found(request, "Page")
    records: RecordsStore = request.app.state.records_store
    return _render(request, "records/list.html", {"kind": kind, "view": view, "items": records.list_records(view.model)})


@router.get("/{kind}/view/{record_id}", response_class=HTMLResponse)
def record_view(request: Request, kind: str, record_id: str) -> Response:
    if denied := _guard(request):
        return denied
    view, item = _lookup(request, kind, record_id)
    if view is None:
        return item
    records: RecordsStore = request.app.state.records_store

    context = {"kind": kind, "view": view, "item": item, "display": _record_to_form(request, view, item)}
    department_id = getattr(item, "department_id", None)
    context["department"] = records.get_record(Department, department_id) if department_id else None
    teacher_id = getattr(item, "teacher_id", None)
    context["teacher"] = records.get_record(Teacher, teacher_id) if teacher_id else None
    if isinstance(item, Department):
        context["members"] = {
            "Teachers": records.teachers_in_department(item.id),
            "Students": records.students_in_department(item.id),
            "Courses": records.courses_for_department(item.id),
        }
    elif isinstance(item, Teacher):
        context["members"] = {"Courses": records.courses_for_teacher(item.id)}
    return _render(request, "records/view.html", context)


@router.get("/{kind}/create", response_class=HTMLResponse)
def record_create_form(request: Request, kind: str) -> Response:
    if denied := _guard(request):
        return denied
    view = _VIEWS.get(kind)
    if view is None:
        return _not_found(request, "Page")
    return _render(request, "records/form.html", _form_context(request, kind, view, {}, [], f"/{kind}/create"))


@router.post("/{kind}/create", response_class=HTMLResponse)
async def record_create(request: Request, kind: str) -> Response:
    if denied := _guard(request):
        return denied
    view = _VIEWS.get(kind)
    if view is None:
        return _not_found(request, "Page")
    return await _save_from_form(request, kind, view, None)


@router.get("/{kind}/edit/{record_id}", response_class=HTMLResponse)
def record_edit_form(request: Request, kind: str, record_id: str) -> Response:
    if denied := _guard(request):
        return denied
    view, item = _lookup(request, kind, record_id)
    if view is None:
        return item
    values = _record_to_form(request, view, item)
    return _render(request, "records/form.html", _form_context(request, kind, view, values, [], f"/{kind}/edit/{item.id}"))


@router.post("/{kind}/edit/{record_id}", response_class=HTMLResponse)
async def record_edit(request: Request, kind: str, record_id: str) -> Response:
    if denied := _guard(request):
        return denied
    view, item = _lookup(request, kind, record_id)
    if view is None:
        return item
    return await _save_from_form(request, kind, view, item.id)


@router.get("/{kind}/delete/{record_id}", response_class=HTMLResponse)
def record_delete_confirm(request: Request, kind: str, record_id: str) -> Response:
    """Show a confirmation page. Nothing is deleted on GET."""
    if denied := _guard(request):
        return denied
    view, item = _lookup(request, kind, record_id)
    if view is None:
        return item
    return _render(request, "records/confirm_delete.html", {"kind": kind, "view": view, "item": item})


@router.post("/{kind}/delete/{record_id}", response_class=HTMLResponse)
def record_delete(request: Request, kind: str, record_id: str) -> Response:
    if denied := _guard(request):
        return denied
    view, item = _lookup(request, kind, record_id)
    if view is None:
        return item
    request.app.state.records_store.delete_record(view.model, item.id)
    logger.info("Deleted %s %d", kind, item.id)
    return RedirectResponse(f"/{kind}/list", status_code=302)
