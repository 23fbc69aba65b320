# aurora/backend/api/schemas/attendance.py
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...models.db_models import StaffAttendanceDay, StudentAttendanceRecord
from ...services.attendance_aggregator import AttendanceSummary, format_rate
from ...services.staff_attendance_service import EnrichedStaffAttendanceDay, MarkResult
from .directory import StaffResponse, StudentResponse


class StaffAttendanceMarkRequest(BaseModel):
    """
    Request body for recording a staff member's status on a day. Both fields
    are checked by the service so a missing one is reported as a 400.
    """
    date: Optional[str] = Field(None, description="The day in YYYY-MM-DD format.")
    status: Optional[str] = Field(None, description="'present' or 'absent'.")


class StudentAttendanceMarkRequest(BaseModel):
    admission_number: Optional[str] = Field(None, alias="admissionNumber")
    date: Optional[str] = Field(None, description="The day in YYYY-MM-DD format.")
    status: Optional[str] = Field(None, description="'present' or 'absent'.")

    model_config = ConfigDict(populate_by_name=True)


class StaffStatusEntryResponse(BaseModel):
    staff_id: str = Field(alias="staffId")
    status: str
    staff_details: Optional[StaffResponse] = Field(None, alias="staffDetails")

    model_config = ConfigDict(populate_by_name=True)


class StaffAttendanceDayResponse(BaseModel):
    date: date
    staff_status: List[StaffStatusEntryResponse] = Field(alias="staffStatus")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_day(cls, day: StaffAttendanceDay) -> "StaffAttendanceDayResponse":
        return cls(
            date=day.date,
            staff_status=[StaffStatusEntryResponse(staff_id=e.staff_id, status=e.status) for e in day.statuses],
        )

    @classmethod
    def from_enriched_day(cls, day: EnrichedStaffAttendanceDay) -> "StaffAttendanceDayResponse":
        return cls(
            date=day.date,
            staff_status=[
                StaffStatusEntryResponse(
                    staff_id=e.staff_id,
                    status=e.status,
                    staff_details=StaffResponse.from_staff(e.staff_details) if e.staff_details else None,
                )
                for e in day.statuses
            ],
        )


class StaffAttendanceSummaryResponse(BaseModel):
    staff_details: Optional[StaffResponse] = Field(None, alias="staffDetails")
    total_days: int = Field(alias="totalDays")
    days_present: int = Field(alias="daysPresent")
    days_absent: int = Field(alias="daysAbsent")
    weekly_attendance_rate: str = Field(alias="weeklyAttendanceRate")
    overall_attendance_rate: str = Field(alias="overallAttendanceRate")
    attendance: List[StaffAttendanceDayResponse]

    model_config = ConfigDict(populate_by_name=True)


class AllStaffAttendanceResponse(BaseModel):
    attendance: List[StaffAttendanceDayResponse]


class StaffAttendanceMarkResponse(BaseModel):
    message: str
    result: MarkResult


class StudentAttendanceRecordResponse(BaseModel):
    id: Optional[int] = None
    admission_number: str = Field(alias="admissionNumber")
    date: date
    status: str

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: StudentAttendanceRecord) -> "StudentAttendanceRecordResponse":
        return cls.model_validate(record.model_dump())


class StudentRatesResponse(BaseModel):
    student_details: StudentResponse = Field(alias="studentDetails")
    total_days: int = Field(alias="totalDays")
    present_days: int = Field(alias="presentDays")
    absent_days: int = Field(alias="absentDays")
    weekly_attendance_rate: str = Field(alias="weeklyAttendanceRate")
    overall_attendance_rate: str = Field(alias="overallAttendanceRate")

    model_config = ConfigDict(populate_by_name=True)


class StudentAttendanceSummaryResponse(StudentRatesResponse):
    attendance_records: List[StudentAttendanceRecordResponse] = Field(alias="attendanceRecords")


class AllStudentsAttendanceResponse(BaseModel):
    students_attendance: List[StudentRatesResponse] = Field(alias="studentsAttendance")

    model_config = ConfigDict(populate_by_name=True)


class StudentAttendanceMarkResponse(BaseModel):
    message: str = "Attendance recorded successfully"
    result: MarkResult = MarkResult.CREATED
    data: StudentAttendanceRecordResponse


def summary_fields(summary: AttendanceSummary, decimals: int) -> dict:
    """Counts and formatted rates keyed by field name, shared by the student responses."""
    return {
        "total_days": summary.total_days,
        "present_days": summary.present_days,
        "absent_days": summary.absent_days,
        "weekly_attendance_rate": format_rate(summary.weekly_attendance_rate, decimals),
        "overall_attendance_rate": format_rate(summary.overall_attendance_rate, decimals),
    }
