"""
records/seed.py -- Bootstrap sample accounts and records on an empty install.

Each step only runs when its table is empty, so calling seed_sample_data()
on every startup is safe. Sample accounts are written straight to the
credential store (not through registration) because they carry fixed roles.

Sample logins:
    admin    / admin123    ROLE_ADMIN
    teacher1 / teacher123  ROLE_TEACHER
    student1 / student123  ROLE_STUDENT
"""

import logging

from auth.models import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER, Account
from auth.store import AccountStore
from auth.tokens import hash_password
from records.models import Course, Department, Student, Teacher
from records.store import RecordsStore

logger = logging.getLogger("registrar.records")

SAMPLE_ACCOUNTS: tuple[tuple[str, str, str, str], ...] = (
    ("admin", "admin@example.com", "admin123", ROLE_ADMIN),
    ("teacher1", "teacher1@example.com", "teacher123", ROLE_TEACHER),
    ("student1", "student1@example.com", "student123", ROLE_STUDENT),
)

SAMPLE_DEPARTMENTS: tuple[tuple[str, str], ...] = (
    ("Computer Science", "Department of Computer Science and Engineering"),
    ("Mathematics", "Department of Mathematics"),
    ("Physics", "Department of Physics"),
)


def seed_accounts(accounts: AccountStore) -> int:
    """Create the sample accounts if the credential store is empty. Returns how many were created."""
    if accounts.count() > 0:
        return 0
    for username, email, password, role in SAMPLE_ACCOUNTS:
        accounts.save(
            Account(
                username=username,
                email=email,
                hashed_password=hash_password(password),
                roles={role},
            )
        )
        logger.info("Sample account created: %s (%s)", username, role)
    return len(SAMPLE_ACCOUNTS)


def seed_records(records: RecordsStore) -> None:
    """Create sample departments, a teacher, two courses and a student where missing."""
    if records.count(Department) == 0:
        for name, description in SAMPLE_DEPARTMENTS:
            records.save_record(Department(name=name, description=description))
        logger.info("Sample departments created")

    cs = records.find_department_by_name("Computer Science")
    if cs is None:
        return

    if records.count(Teacher) == 0:
        records.save_record(
            Teacher(
                first_name="John",
                last_name="Smith",
                email="john.smith@example.com",
                employee_id="T001",
                phone="1234567890",
                department_id=cs.id,
            )
        )
        logger.info("Sample teacher created")

    teacher = records.find_teacher_by_employee_id("T001")
    if records.count(Course) == 0 and teacher is not None:
        records.save_record(
            Course(
                name="Data Structures",
                course_code="CS101",
                description="Introduction to Data Structures",
                credits=3,
                department_id=cs.id,
                teacher_id=teacher.id,
            )
        )
        records.save_record(
            Course(
                name="Algorithms",
                course_code="CS102",
                description="Algorithm Design and Analysis",
                credits=4,
                department_id=cs.id,
                teacher_id=teacher.id,
            )
        )
        logger.info("Sample courses created")

    if records.count(Student) == 0:
        records.save_record(
            Student(
                first_name="Alice",
                last_name="Johnson",
                email="alice.johnson@example.com",
                student_id="S001",
                phone="9876543210",
                department_id=cs.id,
            )
        )
        logger.info("Sample student created")


def seed_sample_data(accounts: AccountStore, records: RecordsStore) -> None:
    seed_accounts(accounts)
    seed_records(records)
