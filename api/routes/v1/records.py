"""
api/routes/v1/records.py -- Read-only JSON views of academic records.

Routes:
  GET /api/v1/students[/{id}]      -- any authenticated principal
  GET /api/v1/teachers[/{id}]      -- TEACHER or ADMIN
  GET /api/v1/departments[/{id}]   -- TEACHER or ADMIN
  GET /api/v1/courses[/{id}]       -- TEACHER or ADMIN

The role column above is informational: the router-level require_access
dependency asks auth/policy.py, which owns the actual rules.
Mutations happen through the web forms only.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import CourseResponse, DepartmentResponse, StudentResponse, TeacherResponse
from auth.dependencies import require_access
from records.models import Course, Department, Student, Teacher
from records.store import RecordsStore, ResourceNotFound

router = APIRouter(dependencies=[Depends(require_access)])


def _store(request: Request) -> RecordsStore:
    return request.app.state.records_store


def _require(request: Request, model: type, record_id: int):
    try:
        return _store(request).require_record(model, record_id)
    except ResourceNotFound as exc:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": str(exc)}) from exc


@router.get("/students", response_model=list[StudentResponse])
def list_students(request: Request) -> list[StudentResponse]:
    return [StudentResponse(**asdict(s)) for s in _store(request).list_records(Student)]


@router.get("/students/{record_id}", response_model=StudentResponse)
def get_student(request: Request, record_id: int) -> StudentResponse:
    return StudentResponse(**asdict(_require(request, Student, record_id)))


@router.get("/teachers", response_model=list[TeacherResponse])
def list_teachers(request: Request) -> list[TeacherResponse]:
    return [TeacherResponse(**asdict(t)) for t in _store(request).list_records(Teacher)]


@router.get("/teachers/{record_id}", response_model=TeacherResponse)
def get_teacher(request: Request, record_id: int) -> TeacherResponse:
    return TeacherResponse(**asdict(_require(request, Teacher, record_id)))


@router.get("/departments", response_model=list[DepartmentResponse])
def list_departments(request: Request) -> list[DepartmentResponse]:
    return [DepartmentResponse(**asdict(d)) for d in _store(request).list_records(Department)]


@router.get("/departments/{record_id}", response_model=DepartmentResponse)
def get_department(request: Request, record_id: int) -> DepartmentResponse:
    return DepartmentResponse(**asdict(_require(request, Department, record_id)))


@router.get("/courses", response_model=list[CourseResponse])
def list_courses(request: Request) -> list[CourseResponse]:
    return [CourseResponse(**asdict(c)) for c in _store(request).list_records(Course)]


@router.get("/courses/{record_id}", response_model=CourseResponse)
def get_course(request: Request, record_id: int) -> CourseResponse:
    return CourseResponse(**asdict(_require(request, Course, record_id)))
