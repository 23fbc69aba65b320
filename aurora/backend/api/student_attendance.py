import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ..models.db_models import Role, User
from ..services.attendance_aggregator import check_precision
from ..services.student_attendance_service import StudentAttendanceService
from .auth import get_current_user, require_roles
from .dependencies import get_student_attendance_service
from .schemas.attendance import (
    AllStudentsAttendanceResponse,
    StudentAttendanceMarkRequest,
    StudentAttendanceMarkResponse,
    StudentAttendanceRecordResponse,
    StudentAttendanceSummaryResponse,
    StudentRatesResponse,
    summary_fields,
)
from .schemas.directory import StudentResponse
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/student-attendance", tags=["Student Attendance"])

DEFAULT_PRECISION = 0


@router.get("", response_model=AllStudentsAttendanceResponse, summary="Attendance summary of every student")
@limiter.limit("60/minute")
async def get_all_students_attendance(
    request: Request,
    user: User = Depends(require_roles(Role.ADMIN)),
    service: StudentAttendanceService = Depends(get_student_attendance_service),
):
    overviews = await service.get_all_students_attendance()
    return AllStudentsAttendanceResponse(
        students_attendance=[
            StudentRatesResponse(
                student_details=StudentResponse.from_student(overview.student_details),
                **summary_fields(overview.summary, DEFAULT_PRECISION),
            )
            for overview in overviews
        ]
    )


@router.get("/{admission_number}", response_model=StudentAttendanceSummaryResponse, summary="Attendance summary of one student")
@limiter.limit("60/minute")
async def get_student_attendance_summary(
    request: Request,
    admission_number: str,
    precision: Optional[int] = Query(None, description="Decimal places of the rates, 0 or 2."),
    user: User = Depends(require_roles(Role.ADMIN, Role.STUDENT)),
    service: StudentAttendanceService = Depends(get_student_attendance_service),
):
    decimals = check_precision(precision if precision is not None else DEFAULT_PRECISION)
    report = await service.get_student_attendance_summary(admission_number)
    return StudentAttendanceSummaryResponse(
        student_details=StudentResponse.from_student(report.student_details),
        attendance_records=[StudentAttendanceRecordResponse.from_record(r) for r in report.attendance_records],
        **summary_fields(report.summary, decimals),
    )


@router.post(
    "",
    response_model=StudentAttendanceMarkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a student's status for a day",
)
@limiter.limit("120/minute")
async def mark_student_attendance(
    request: Request,
    mark_request: StudentAttendanceMarkRequest,
    user: User = Depends(get_current_user),
    service: StudentAttendanceService = Depends(get_student_attendance_service),
):
    record = await service.mark_student_attendance(
        mark_request.admission_number, mark_request.date, mark_request.status
    )
    logger.info(f"User '{user.username}' marked student '{record.admission_number}' for {record.date}.")
    return StudentAttendanceMarkResponse(data=StudentAttendanceRecordResponse.from_record(record))
