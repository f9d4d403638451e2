"""
API request and response models for Registrar REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
records/models.py, which own the internal domain representation. Route
handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    # Passwords over the bcrypt byte limit never match; they get the usual 401.
    password: str = Field(min_length=1, max_length=255)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    role is a bare role name ("student", "TEACHER"); the server turns it into
    a ROLE_ tag and, in strict mode, rejects unknown names.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1)
    role: str = Field(min_length=1, max_length=50)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        """Reject passwords bcrypt cannot hash. The limit is in UTF-8 bytes, not characters."""
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class AccountPatch(BaseModel):
    """Request body for PATCH /api/v1/auth/accounts/{id}. Omitted fields are unchanged."""

    enabled: Optional[bool] = None
    roles: Optional[list[str]] = Field(default=None, min_length=1, max_length=3)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    username: str
    roles: list[str]


class AccountResponse(BaseModel):
    id: int
    username: str
    email: str
    roles: list[str]
    enabled: bool
    created_at: str
    last_login: Optional[str] = None


class ProfileSummary(BaseModel):
    kind: str  # "student" | "teacher"
    id: int
    name: str


class MeResponse(BaseModel):
    account_id: Optional[int]
    username: str
    roles: list[str]
    profile: Optional[ProfileSummary] = None


# ---------------------------------------------------------------------------
# Records -- responses
# ---------------------------------------------------------------------------


class DepartmentResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None


class TeacherResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    employee_id: str
    phone: Optional[str] = None
    department_id: Optional[int] = None
    account_id: Optional[int] = None


class StudentResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    student_id: str
    phone: Optional[str] = None
    department_id: Optional[int] = None
    account_id: Optional[int] = None


class CourseResponse(BaseModel):
    id: int
    name: str
    course_code: str
    description: Optional[str] = None
    credits: Optional[int] = None
    department_id: Optional[int] = None
    teacher_id: Optional[int] = None
