"""
records/store.py -- SQLAlchemy-backed persistence for academic records.

Uses SQLAlchemy Core (not ORM) so the dataclasses in records/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. RecordsStore is the repository; the four
entity types share one generic set of CRUD methods keyed by dataclass, plus
the lookup-by-field finders the pages and the seeding routine need.
_row_to_record is the mapper.

Profile linkage: students.account_id and teachers.account_id are nullable
UNIQUE columns. SQLite (and PostgreSQL) treat NULLs as distinct, so any
number of unlinked profiles is fine while a linked account appears at most
once per table. The cross-table half of the one-to-one rule (an account may
not back both a student and a teacher) is checked in code before writing.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RecordsStore()                           # SQLite default
    dept_id = store.save_record(Department(name="Physics"))
    store.list_records(Department)
    store.close()
"""

import logging
from dataclasses import fields
from pathlib import Path
from typing import Optional, TypeVar, Union

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine

from records.models import Course, Department, Student, Teacher

logger = logging.getLogger("registrar.records")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'registrar_records.db'}"

R = TypeVar("R", Department, Teacher, Student, Course)
Profile = Union[Student, Teacher]


class ResourceNotFound(LookupError):
    """A requested Department/Teacher/Student/Course id does not exist."""

    def __init__(self, model: type, record_id: int) -> None:
        super().__init__(f"{model.__name__} {record_id} not found")
        self.model = model
        self.record_id = record_id


class ProfileLinkError(ValueError):
    """The account is already linked to another profile."""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_departments = Table(
    "departments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", Text),
)

_teachers = Table(
    "teachers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("employee_id", String(50), nullable=False, unique=True),
    Column("phone", String(30)),
    Column("department_id", Integer),
    Column("account_id", Integer, unique=True),
)

_students = Table(
    "students",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("student_id", String(50), nullable=False, unique=True),
    Column("phone", String(30)),
    Column("department_id", Integer),
    Column("account_id", Integer, unique=True),
)

_courses = Table(
    "courses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("course_code", String(50), nullable=False, unique=True),
    Column("description", Text),
    Column("credits", Integer),
    Column("department_id", Integer),
    Column("teacher_id", Integer),
)

_TABLES: dict[type, Table] = {
    Department: _departments,
    Teacher: _teachers,
    Student: _students,
    Course: _courses,
}

_PROFILE_TABLES: dict[type, Table] = {
    Student: _students,
    Teacher: _teachers,
}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RecordsStore:
    """Repository for Department, Teacher, Student and Course records."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    def list_records(self, model: type[R]) -> list[R]:
        table = _TABLES[model]
        with self.engine.connect() as conn:
            rows = conn.execute(table.select().order_by(table.c.id)).fetchall()
        return [_row_to_record(model, r) for r in rows]

    def get_record(self, model: type[R], record_id: int) -> Optional[R]:
        table = _TABLES[model]
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(table.c.id == record_id)).fetchone()
        return _row_to_record(model, row) if row is not None else None

    def require_record(self, model: type[R], record_id: int) -> R:
        """Like get_record(), but raises ResourceNotFound instead of returning None."""
        record = self.get_record(model, record_id)
        if record is None:
            raise ResourceNotFound(model, record_id)
        return record

    def save_record(self, record: R) -> int:
        """Insert (id is None) or update a record. Returns its id.

        Raises:
            ResourceNotFound: updating an id that does not exist.
            ProfileLinkError: account_id already backs another profile.
            sqlalchemy.exc.IntegrityError: any other UNIQUE violation.
        """
        model = type(record)
        table = _TABLES[model]
        values = {f.name: getattr(record, f.name) for f in fields(record) if f.name != "id"}
        with self.engine.begin() as conn:
            if model in _PROFILE_TABLES and record.account_id is not None:
                self._check_account_free(conn, record.account_id, model, record.id)
            if record.id is None:
                result = conn.execute(table.insert().values(**values))
                return result.inserted_primary_key[0]
            result = conn.execute(table.update().where(table.c.id == record.id).values(**values))
            if result.rowcount == 0:
                raise ResourceNotFound(model, record.id)
            return record.id

    def delete_record(self, model: type, record_id: int) -> bool:
        """Delete a record. Returns False if it did not exist.

        References to the deleted row are cleared rather than cascaded:
        removing a department unassigns its teachers, students and courses;
        removing a teacher unassigns their courses. Linked accounts are
        never touched.
        """
        table = _TABLES[model]
        with self.engine.begin() as conn:
            result = conn.execute(table.delete().where(table.c.id == record_id))
            if result.rowcount == 0:
                return False
            if model is Department:
                for dependent in (_teachers, _students, _courses):
                    conn.execute(
                        dependent.update().where(dependent.c.department_id == record_id).values(department_id=None)
                    )
            elif model is Teacher:
                conn.execute(_courses.update().where(_courses.c.teacher_id == record_id).values(teacher_id=None))
        logger.info("Deleted %s %d", model.__name__, record_id)
        return True

    def count(self, model: type) -> int:
        table = _TABLES[model]
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(table)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Finders
    # ------------------------------------------------------------------

    def find_department_by_name(self, name: str) -> Optional[Department]:
        return self._find_one(Department, _departments.c.name == name)

    def find_teacher_by_employee_id(self, employee_id: str) -> Optional[Teacher]:
        return self._find_one(Teacher, _teachers.c.employee_id == employee_id)

    def find_teacher_by_email(self, email: str) -> Optional[Teacher]:
        return self._find_one(Teacher, _teachers.c.email == email)

    def find_student_by_student_id(self, student_id: str) -> Optional[Student]:
        return self._find_one(Student, _students.c.student_id == student_id)

    def find_student_by_email(self, email: str) -> Optional[Student]:
        return self._find_one(Student, _students.c.email == email)

    def find_course_by_code(self, course_code: str) -> Optional[Course]:
        return self._find_one(Course, _courses.c.course_code == course_code)

    def courses_for_department(self, department_id: int) -> list[Course]:
        return self._find_all(Course, _courses.c.department_id == department_id)

    def courses_for_teacher(self, teacher_id: int) -> list[Course]:
        return self._find_all(Course, _courses.c.teacher_id == teacher_id)

    def teachers_in_department(self, department_id: int) -> list[Teacher]:
        return self._find_all(Teacher, _teachers.c.department_id == department_id)

    def students_in_department(self, department_id: int) -> list[Student]:
        return self._find_all(Student, _students.c.department_id == department_id)

    # ------------------------------------------------------------------
    # Profile <-> account linkage
    # ------------------------------------------------------------------

    def find_profile_for_account(self, account_id: int) -> Optional[Profile]:
        """Return the Student or Teacher linked to account_id, if any."""
        for model, table in _PROFILE_TABLES.items():
            found = self._find_one(model, table.c.account_id == account_id)
            if found is not None:
                return found
        return None

    def link_account(self, model: type, profile_id: int, account_id: Optional[int]) -> None:
        """Point a profile at an account (or detach it with account_id=None).

        Raises ResourceNotFound for an unknown profile and ProfileLinkError if
        the account already backs a different profile.
        """
        table = _PROFILE_TABLES[model]
        with self.engine.begin() as conn:
            if account_id is not None:
                self._check_account_free(conn, account_id, model, profile_id)
            result = conn.execute(table.update().where(table.c.id == profile_id).values(account_id=account_id))
            if result.rowcount == 0:
                raise ResourceNotFound(model, profile_id)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _check_account_free(conn: Connection, account_id: int, model: type, profile_id: Optional[int]) -> None:
        for other_model, table in _PROFILE_TABLES.items():
            stmt = select(table.c.id).where(table.c.account_id == account_id)
            if other_model is model and profile_id is not None:
                stmt = stmt.where(table.c.id != profile_id)
            if conn.execute(stmt).first() is not None:
                raise ProfileLinkError(f"Account {account_id} is already linked to a {other_model.__name__.lower()}")

    def _find_one(self, model: type[R], clause) -> Optional[R]:
        table = _TABLES[model]
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(clause)).first()
        return _row_to_record(model, row) if row is not None else None

    def _find_all(self, model: type[R], clause) -> list[R]:
        table = _TABLES[model]
        with self.engine.connect() as conn:
            rows = conn.execute(table.select().where(clause).order_by(table.c.id)).fetchall()
        return [_row_to_record(model, r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_record(model: type[R], row) -> R:
    mapping = row._mapping
    return model(**{f.name: mapping[f.name] for f in fields(model)})
