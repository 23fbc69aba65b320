import logging
from collections import defaultdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..core.exceptions import NotFoundError
from ..core.validators import parse_attendance_date, parse_attendance_status, require_non_empty
from ..db import tables
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Staff, StaffAttendanceDay, StaffStatusEntry
from .attendance_aggregator import AttendanceSummary, summarize_staff
from .directory_service import StaffDirectory

logger = logging.getLogger(__name__)


class MarkResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class EnrichedStaffStatusEntry(StaffStatusEntry):
    """Status entry enriched with the staff member's directory record (None if unknown)."""
    staff_details: Optional[Staff] = None


class EnrichedStaffAttendanceDay(BaseModel):
    date: date
    statuses: List[EnrichedStaffStatusEntry]


class StaffAttendanceReport(BaseModel):
    staff_id: str
    summary: AttendanceSummary
    attendance: List[StaffAttendanceDay]
    staff_details: Optional[Staff] = None


class StaffAttendanceService:
    """
    Reads, summarizes and records staff attendance.

    A day record is stored as one 'staff_attendance_days' row plus one
    'staff_attendance_statuses' row per staff member, unique on
    (date, staff_id). Writing a status is therefore a single conditional
    insert-or-update per entry and never rewrites other members' entries.
    """
    def __init__(self, db_client: AsyncPostgresClient, staff_directory: StaffDirectory):
        self.db_client = db_client
        self.staff_directory = staff_directory

    async def load_days(self) -> List[StaffAttendanceDay]:
        """All day records, oldest first, entries in the order they were first recorded."""
        day_rows = await self.db_client.select(tables.STAFF_ATTENDANCE_DAYS, order_by=["date"])
        status_rows = await self.db_client.select(tables.STAFF_ATTENDANCE_STATUSES, order_by=["id"])

        statuses_by_date: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
        for row in status_rows:
            statuses_by_date[row["date"]].append({"staff_id": row["staff_id"], "status": row["status"]})

        return [
            StaffAttendanceDay(date=row["date"], statuses=statuses_by_date.get(row["date"], []))
            for row in day_rows
        ]

    async def load_days_for_staff(self, staff_id: str) -> List[StaffAttendanceDay]:
        """Day records reduced to the single entry of `staff_id`; days without one are left out."""
        rows = await self.db_client.select(
            tables.STAFF_ATTENDANCE_STATUSES, {"staff_id": staff_id}, order_by=["date"]
        )
        return [
            StaffAttendanceDay(date=row["date"], statuses=[{"staff_id": row["staff_id"], "status": row["status"]}])
            for row in rows
        ]

    async def get_staff_attendance_summary(
        self, staff_id: str, expand_staff: bool = False, now: Optional[datetime] = None
    ) -> StaffAttendanceReport:
        staff_id = require_non_empty(staff_id, "staffId")
        days = await self.load_days_for_staff(staff_id)
        if not days:
            raise NotFoundError("No attendance data found for this staff ID.")

        staff_details = await self.staff_directory.get_staff(staff_id) if expand_staff else None

        return StaffAttendanceReport(
            staff_id=staff_id,
            summary=summarize_staff(days, staff_id, now),
            attendance=days,
            staff_details=staff_details,
        )

    async def get_all_staff_attendance(self, expand_staff: bool = False) -> List[EnrichedStaffAttendanceDay]:
        days = await self.load_days()
        if not days:
            raise NotFoundError("No attendance data found.")

        staff_map: Dict[str, Staff] = {}
        if expand_staff:
            staff_map = {staff.staff_id: staff for staff in await self.staff_directory.list_staff()}

        return [
            EnrichedStaffAttendanceDay(
                date=day.date,
                statuses=[
                    EnrichedStaffStatusEntry(
                        staff_id=entry.staff_id,
                        status=entry.status,
                        staff_details=staff_map.get(entry.staff_id),
                    )
                    for entry in day.statuses
                ],
            )
            for day in days
        ]

    async def mark_staff_attendance(self, staff_id: str, date_value: Any, status: Any) -> MarkResult:
        """
        Records `status` for `staff_id` on the given day.

        Creates the day record when it does not exist yet (result: created);
        otherwise overwrites the member's entry in place or appends a new one
        (result: updated). Other members' entries are never touched.
        """
        staff_id = require_non_empty(staff_id, "staffId")
        day = parse_attendance_date(date_value)
        attendance_status = parse_attendance_status(status)

        # The day row and the entry commit together, a failed entry write
        # must not leave an empty day behind.
        async with self.db_client.transaction() as tx:
            inserted_days = await tx.insert(
                tables.STAFF_ATTENDANCE_DAYS, [{"date": day}], on_conflict_do_nothing=["date"]
            )
            await tx.upsert(
                tables.STAFF_ATTENDANCE_STATUSES,
                [{"date": day, "staff_id": staff_id, "status": attendance_status.value}],
                conflict_columns=["date", "staff_id"],
                update_columns=["status"],
            )

        result = MarkResult.CREATED if inserted_days else MarkResult.UPDATED
        logger.info(f"Staff attendance {result.value}: staff='{staff_id}', date={day}, status={attendance_status.value}.")
        return result
