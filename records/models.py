"""
records/models.py -- Domain dataclasses for academic records.

Pure data containers. Persistence lives in records/store.py.

Profiles (Student, Teacher) may point at an auth Account through account_id.
The reference is weak: deleting a profile never touches the account, and the
account never learns which profile points at it.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Department:
    name: str
    description: Optional[str] = None
    id: Optional[int] = None


@dataclass
class Teacher:
    first_name: str
    last_name: str
    email: str
    employee_id: str
    phone: Optional[str] = None
    department_id: Optional[int] = None
    account_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class Student:
    first_name: str
    last_name: str
    email: str
    student_id: str
    phone: Optional[str] = None
    department_id: Optional[int] = None
    account_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class Course:
    name: str
    course_code: str
    description: Optional[str] = None
    credits: Optional[int] = None
    department_id: Optional[int] = None
    teacher_id: Optional[int] = None
    id: Optional[int] = None
