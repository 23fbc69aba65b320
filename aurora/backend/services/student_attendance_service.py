import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..core.exceptions import DuplicateError, NotFoundError, StoreError
from ..core.validators import parse_attendance_date, parse_attendance_status, require_non_empty
from ..db import tables
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Student, StudentAttendanceRecord
from .attendance_aggregator import AttendanceSummary, summarize
from .directory_service import StudentDirectory

logger = logging.getLogger(__name__)

ALREADY_MARKED = "Attendance already marked for this student on this date."


class StudentAttendanceOverview(BaseModel):
    student_details: Student
    summary: AttendanceSummary


class StudentAttendanceReport(StudentAttendanceOverview):
    attendance_records: List[StudentAttendanceRecord]


class StudentAttendanceService:
    """
    Student attendance is a flat row per (admission number, date). Rows are
    created once and never merged: a second mark for the same day is rejected.
    """
    def __init__(self, db_client: AsyncPostgresClient, student_directory: StudentDirectory):
        self.db_client = db_client
        self.student_directory = student_directory

    async def get_student_attendance_summary(
        self, admission_number: str, now: Optional[datetime] = None
    ) -> StudentAttendanceReport:
        admission_number = require_non_empty(admission_number, "admissionNumber")
        rows = await self.db_client.select(
            tables.STUDENT_ATTENDANCES, {"admission_number": admission_number}, order_by=["date"]
        )
        if not rows:
            raise NotFoundError("No attendance data found for this student.")

        student = await self.student_directory.get_student(admission_number)
        records = [StudentAttendanceRecord(**row) for row in rows]

        return StudentAttendanceReport(
            student_details=student,
            summary=summarize(records, now),
            attendance_records=records,
        )

    async def get_all_students_attendance(self, now: Optional[datetime] = None) -> List[StudentAttendanceOverview]:
        """One summary per student in the directory, including students with no records."""
        rows = await self.db_client.select(tables.STUDENT_ATTENDANCES, order_by=["date"])
        students = await self.student_directory.list_students()

        records_by_student: Dict[str, List[StudentAttendanceRecord]] = defaultdict(list)
        for row in rows:
            record = StudentAttendanceRecord(**row)
            records_by_student[record.admission_number].append(record)

        return [
            StudentAttendanceOverview(
                student_details=student,
                summary=summarize(records_by_student.get(student.admission_number, []), now),
            )
            for student in students
        ]

    async def mark_student_attendance(self, admission_number: str, date_value: Any, status: Any) -> StudentAttendanceRecord:
        admission_number = require_non_empty(admission_number, "admissionNumber")
        day = parse_attendance_date(date_value)
        attendance_status = parse_attendance_status(status)

        if await self.student_directory.find_by_admission_number(admission_number) is None:
            raise NotFoundError("Student not found.")

        existing = await self.db_client.select_one(
            tables.STUDENT_ATTENDANCES, {"admission_number": admission_number, "date": day}
        )
        if existing:
            logger.warning(f"Student '{admission_number}' already has attendance for {day}, rejecting.")
            raise DuplicateError(ALREADY_MARKED)

        try:
            rows = await self.db_client.insert(
                tables.STUDENT_ATTENDANCES,
                [{"admission_number": admission_number, "date": day, "status": attendance_status.value}],
            )
        except StoreError as e:
            # A concurrent mark for the same day slipped in after the lookup.
            if e.is_unique_violation:
                raise DuplicateError(ALREADY_MARKED) from e
            raise

        logger.info(f"Student attendance recorded: student='{admission_number}', date={day}, status={attendance_status.value}.")
        return StudentAttendanceRecord(**rows[0])
