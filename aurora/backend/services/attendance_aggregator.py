"""
Attendance summary computation.

Everything here is a pure function over already-fetched records: nothing
raises on bad data, empty input simply produces zero counts and rates.
"""
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Protocol

from pydantic import BaseModel

from ..core.exceptions import ValidationError
from ..models.db_models import AttendanceStatus, StaffAttendanceDay

WEEKLY_WINDOW = timedelta(days=7)
SUPPORTED_PRECISIONS = (0, 2)


class DatedStatus(Protocol):
    date: date
    status: str


class StaffDayEntry(BaseModel):
    """A single staff member's status on one day, extracted from a day record."""
    date: date
    status: str


class AttendanceSummary(BaseModel):
    total_days: int
    present_days: int
    absent_days: int
    weekly_attendance_rate: float
    overall_attendance_rate: float


def _as_utc(moment: datetime) -> datetime:
    return moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _is_present(status: str) -> bool:
    return status == AttendanceStatus.PRESENT.value


def _percentage(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def is_in_weekly_window(day: date, now: datetime) -> bool:
    """True when `day` is Monday-Friday and falls within [now - 7 days, now]."""
    now = _as_utc(now)
    if day.isoweekday() > 5:
        return False
    return now - WEEKLY_WINDOW <= _start_of_day(day) <= now


def weekly_attendance_rate(records: Iterable[DatedStatus], now: datetime) -> float:
    weekly = [record for record in records if is_in_weekly_window(record.date, now)]
    weekly_present = sum(1 for record in weekly if _is_present(record.status))
    return _percentage(weekly_present, len(weekly))


def summarize(
    records: Iterable[DatedStatus],
    now: Optional[datetime] = None,
    count_absent_independently: bool = False,
) -> AttendanceSummary:
    """
    Builds the summary for one subject's records.

    Student records are strictly binary, so absent days are whatever is not
    present. Staff records may carry legacy statuses; with
    `count_absent_independently` only explicit 'absent' entries are counted.
    """
    records = list(records)
    now = datetime.now(timezone.utc) if now is None else now

    total_days = len(records)
    present_days = sum(1 for record in records if _is_present(record.status))
    if count_absent_independently:
        absent_days = sum(1 for record in records if record.status == AttendanceStatus.ABSENT.value)
    else:
        absent_days = total_days - present_days

    return AttendanceSummary(
        total_days=total_days,
        present_days=present_days,
        absent_days=absent_days,
        weekly_attendance_rate=weekly_attendance_rate(records, now),
        overall_attendance_rate=_percentage(present_days, total_days),
    )


def extract_staff_entries(days: Iterable[StaffAttendanceDay], staff_id: str) -> List[StaffDayEntry]:
    """Picks `staff_id`'s entry out of every day record. Days without one are skipped."""
    entries = []
    for day in days:
        entry = day.entry_for(staff_id)
        if entry is not None:
            entries.append(StaffDayEntry(date=day.date, status=entry.status))
    return entries


def summarize_staff(
    days: Iterable[StaffAttendanceDay], staff_id: str, now: Optional[datetime] = None
) -> AttendanceSummary:
    return summarize(extract_staff_entries(days, staff_id), now, count_absent_independently=True)


def check_precision(decimals: int) -> int:
    if decimals not in SUPPORTED_PRECISIONS:
        raise ValidationError(f"Rate precision must be one of {SUPPORTED_PRECISIONS}, got {decimals}.")
    return decimals


def format_rate(value: float, decimals: int) -> str:
    """Renders a percentage as e.g. '50%' or '50.00%', rounding ties away from zero (12.5 -> '13%')."""
    check_precision(decimals)
    rounded = Decimal(str(value)).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    return f"{rounded}%"
