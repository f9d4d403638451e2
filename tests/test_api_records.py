"""
tests/test_api_records.py -- Read-only JSON record endpoints.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


class TestAccess:
    def test_unauthenticated(self, client: TestClient) -> None:
        resp = client.get("/api/v1/students")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_students_open_to_any_role(self, client: TestClient, app_harness) -> None:
        resp = client.get("/api/v1/students", headers=app_harness.headers_for("student1"))
        assert resp.status_code == 200
        assert [s["student_id"] for s in resp.json()] == ["S001"]

    @pytest.mark.parametrize("path", ["/api/v1/teachers", "/api/v1/departments", "/api/v1/courses/1"])
    def test_staff_only_for_students(self, client: TestClient, app_harness, path: str) -> None:
        resp = client.get(path, headers=app_harness.headers_for("student1"))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"


class TestPayloads:
    def test_teacher_list(self, client: TestClient, app_harness) -> None:
        body = client.get("/api/v1/teachers", headers=app_harness.headers_for("teacher1")).json()
        assert body[0]["employee_id"] == "T001"
        assert body[0]["last_name"] == "Smith"

    def test_departments(self, client: TestClient, app_harness) -> None:
        body = client.get("/api/v1/departments", headers=app_harness.headers_for("admin")).json()
        assert {d["name"] for d in body} == {"Computer Science", "Mathematics", "Physics"}

    def test_course_detail(self, client: TestClient, app_harness) -> None:
        course = app_harness.records.find_course_by_code("CS102")
        body = client.get(f"/api/v1/courses/{course.id}", headers=app_harness.headers_for("teacher1")).json()
        assert body["name"] == "Algorithms"
        assert body["credits"] == 4

    def test_student_detail(self, client: TestClient, app_harness) -> None:
        alice = app_harness.records.find_student_by_student_id("S001")
        body = client.get(f"/api/v1/students/{alice.id}", headers=app_harness.headers_for("student1")).json()
        assert body["email"] == "alice.johnson@example.com"

    def test_missing_record(self, client: TestClient, app_harness) -> None:
        resp = client.get("/api/v1/departments/9999", headers=app_harness.headers_for("admin"))
        assert resp.status_code == 404
        assert resp.json()["error"] == {"code": "not_found", "message": "Department 9999 not found"}
