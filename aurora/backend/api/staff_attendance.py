import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from ..models.db_models import Role, User
from ..services.attendance_aggregator import check_precision, format_rate
from ..services.staff_attendance_service import MarkResult, StaffAttendanceService
from .auth import get_current_user, require_roles
from .dependencies import get_staff_attendance_service
from .schemas.attendance import (
    AllStaffAttendanceResponse,
    StaffAttendanceDayResponse,
    StaffAttendanceMarkRequest,
    StaffAttendanceMarkResponse,
    StaffAttendanceSummaryResponse,
)
from .schemas.directory import StaffResponse
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff-attendance", tags=["Staff Attendance"])

EXPAND_STAFF = "staff"


@router.get("", response_model=AllStaffAttendanceResponse, summary="List every staff attendance day")
@limiter.limit("60/minute")
async def get_all_staff_attendance(
    request: Request,
    expand: Optional[str] = Query(None, description="Pass 'staff' to include each member's directory record."),
    user: User = Depends(require_roles(Role.ADMIN)),
    service: StaffAttendanceService = Depends(get_staff_attendance_service),
):
    expand_staff = expand == EXPAND_STAFF
    days = await service.get_all_staff_attendance(expand_staff=expand_staff)
    return AllStaffAttendanceResponse(
        attendance=[StaffAttendanceDayResponse.from_enriched_day(day) for day in days]
    )


@router.get(
    "/{staff_id}",
    response_model=StaffAttendanceSummaryResponse,
    response_model_exclude_unset=True,
    summary="Attendance summary of one staff member",
)
@limiter.limit("60/minute")
async def get_staff_attendance_summary(
    request: Request,
    staff_id: str,
    expand: Optional[str] = Query(None, description="Pass 'staff' to include the member's directory record."),
    precision: Optional[int] = Query(None, description="Decimal places of the rates, 0 or 2."),
    user: User = Depends(require_roles(Role.ADMIN, Role.STAFF)),
    service: StaffAttendanceService = Depends(get_staff_attendance_service),
):
    expand_staff = expand == EXPAND_STAFF
    # Expanded responses have always used whole percentages.
    decimals = check_precision(precision if precision is not None else (0 if expand_staff else 2))

    report = await service.get_staff_attendance_summary(staff_id, expand_staff=expand_staff)
    summary = report.summary

    fields = dict(
        total_days=summary.total_days,
        days_present=summary.present_days,
        days_absent=summary.absent_days,
        weekly_attendance_rate=format_rate(summary.weekly_attendance_rate, decimals),
        overall_attendance_rate=format_rate(summary.overall_attendance_rate, decimals),
        attendance=[StaffAttendanceDayResponse.from_day(day) for day in report.attendance],
    )
    if report.staff_details is not None:
        fields["staff_details"] = StaffResponse.from_staff(report.staff_details)
    return StaffAttendanceSummaryResponse(**fields)


@router.post("/{staff_id}", response_model=StaffAttendanceMarkResponse, summary="Record a staff member's status for a day")
@limiter.limit("120/minute")
async def mark_staff_attendance(
    request: Request,
    response: Response,
    staff_id: str,
    mark_request: StaffAttendanceMarkRequest,
    user: User = Depends(get_current_user),
    service: StaffAttendanceService = Depends(get_staff_attendance_service),
):
    result = await service.mark_staff_attendance(staff_id, mark_request.date, mark_request.status)
    if result == MarkResult.CREATED:
        response.status_code = status.HTTP_201_CREATED
        message = "Staff attendance created"
    else:
        message = "Staff attendance updated"
    logger.info(f"User '{user.username}' marked staff '{staff_id}': {result.value}.")
    return StaffAttendanceMarkResponse(message=message, result=result)
