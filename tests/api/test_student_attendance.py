import pytest
import pytest_asyncio
import httpx
from datetime import date
from unittest.mock import AsyncMock

from aurora.backend.api.auth import get_current_user
from aurora.backend.api.dependencies import get_student_attendance_service
from aurora.backend.core.exceptions import DuplicateError, NotFoundError
from aurora.backend.main import create_app
from aurora.backend.models.db_models import Role, Student, StudentAttendanceRecord, User
from aurora.backend.services.attendance_aggregator import AttendanceSummary
from aurora.backend.services.student_attendance_service import (
    StudentAttendanceOverview,
    StudentAttendanceReport,
)

ADMIN = User(id=1, username="admin", role=Role.ADMIN)
STAFF_USER = User(id=2, username="ada", role=Role.STAFF, staff_id="S1")
STUDENT_USER = User(id=3, username="grace", role=Role.STUDENT, admission_number="ADM001")

GRACE = Student(admission_number="ADM001", name="Grace Hopper", class_name="JSS2", parent_phone="08030000000")

HALF = AttendanceSummary(
    total_days=2, present_days=1, absent_days=1, weekly_attendance_rate=50, overall_attendance_rate=50
)


@pytest.fixture
def mock_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def current_user() -> dict:
    return {"user": ADMIN}


@pytest_asyncio.fixture
async def client(test_settings, mock_service, current_user):
    app = create_app(test_settings)
    app.dependency_overrides[get_student_attendance_service] = lambda: mock_service
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api/v1") as ac:
        yield ac


@pytest.mark.asyncio
class TestStudentAttendanceSummaryEndpoint:

    async def test_summary_shape_and_default_precision(self, client, mock_service):
        mock_service.get_student_attendance_summary.return_value = StudentAttendanceReport(
            student_details=GRACE,
            summary=HALF,
            attendance_records=[
                StudentAttendanceRecord(id=1, admission_number="ADM001", date=date(2024, 3, 4), status="present"),
                StudentAttendanceRecord(id=2, admission_number="ADM001", date=date(2024, 3, 5), status="absent"),
            ],
        )

        response = await client.get("/student-attendance/ADM001")

        assert response.status_code == 200
        data = response.json()
        assert data["studentDetails"]["admissionNumber"] == "ADM001"
        assert data["studentDetails"]["parentPhone"] == "08030000000"
        assert data["totalDays"] == 2
        assert data["presentDays"] == 1
        assert data["absentDays"] == 1
        assert data["weeklyAttendanceRate"] == "50%"
        assert data["overallAttendanceRate"] == "50%"
        assert data["attendanceRecords"][1] == {
            "id": 2, "admissionNumber": "ADM001", "date": "2024-03-05", "status": "absent"
        }

    async def test_precision_two(self, client, mock_service):
        mock_service.get_student_attendance_summary.return_value = StudentAttendanceReport(
            student_details=GRACE, summary=HALF, attendance_records=[]
        )

        response = await client.get("/student-attendance/ADM001", params={"precision": 2})

        assert response.json()["overallAttendanceRate"] == "50.00%"

    async def test_unknown_student_returns_404(self, client, mock_service):
        mock_service.get_student_attendance_summary.side_effect = NotFoundError("No attendance data found for this student.")

        response = await client.get("/student-attendance/ADM404")

        assert response.status_code == 404

    async def test_student_user_may_read_summary(self, client, mock_service, current_user):
        current_user["user"] = STUDENT_USER
        mock_service.get_student_attendance_summary.return_value = StudentAttendanceReport(
            student_details=GRACE, summary=HALF, attendance_records=[]
        )

        response = await client.get("/student-attendance/ADM001")

        assert response.status_code == 200

    async def test_staff_user_is_forbidden(self, client, mock_service, current_user):
        current_user["user"] = STAFF_USER

        response = await client.get("/student-attendance/ADM001")

        assert response.status_code == 403


@pytest.mark.asyncio
class TestAllStudentsAttendanceEndpoint:

    async def test_lists_every_student(self, client, mock_service):
        empty = AttendanceSummary(
            total_days=0, present_days=0, absent_days=0, weekly_attendance_rate=0, overall_attendance_rate=0
        )
        mock_service.get_all_students_attendance.return_value = [
            StudentAttendanceOverview(student_details=GRACE, summary=HALF),
            StudentAttendanceOverview(student_details=Student(admission_number="ADM002", name="Alan Turing"), summary=empty),
        ]

        response = await client.get("/student-attendance")

        assert response.status_code == 200
        students = response.json()["studentsAttendance"]
        assert [s["studentDetails"]["name"] for s in students] == ["Grace Hopper", "Alan Turing"]
        assert students[1]["overallAttendanceRate"] == "0%"
        assert "attendanceRecords" not in students[0]

    async def test_only_admin_may_list(self, client, current_user):
        current_user["user"] = STUDENT_USER

        response = await client.get("/student-attendance")

        assert response.status_code == 403


@pytest.mark.asyncio
class TestMarkStudentAttendanceEndpoint:

    async def test_mark_returns_201_with_record(self, client, mock_service, current_user):
        current_user["user"] = STAFF_USER
        mock_service.mark_student_attendance.return_value = StudentAttendanceRecord(
            id=9, admission_number="ADM001", date=date(2024, 3, 4), status="present"
        )

        response = await client.post(
            "/student-attendance", json={"admissionNumber": "ADM001", "date": "2024-03-04", "status": "present"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["result"] == "created"
        assert data["data"]["id"] == 9
        assert data["data"]["admissionNumber"] == "ADM001"
        mock_service.mark_student_attendance.assert_awaited_once_with("ADM001", "2024-03-04", "present")

    async def test_duplicate_returns_409(self, client, mock_service):
        mock_service.mark_student_attendance.side_effect = DuplicateError(
            "Attendance already marked for this student on this date."
        )

        response = await client.post(
            "/student-attendance", json={"admissionNumber": "ADM001", "date": "2024-03-04", "status": "present"}
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Attendance already marked for this student on this date."

    async def test_unknown_student_returns_404(self, client, mock_service):
        mock_service.mark_student_attendance.side_effect = NotFoundError("Student not found.")

        response = await client.post(
            "/student-attendance", json={"admissionNumber": "ADM404", "date": "2024-03-04", "status": "present"}
        )

        assert response.status_code == 404
