from datetime import date, datetime
from typing import Any, Optional

from ..models.db_models import AttendanceStatus
from .exceptions import ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required.")
    return str(value).strip()


def parse_attendance_date(value: Any) -> date:
    """Accepts a date or a 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = require_non_empty(value, "date")
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date '{text}', expected YYYY-MM-DD.")


def parse_attendance_status(value: Any) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    text = require_non_empty(value, "status").lower()
    try:
        return AttendanceStatus(text)
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"Invalid status '{text}', expected one of: {allowed}.")
