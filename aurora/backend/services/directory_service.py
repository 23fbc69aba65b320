import logging
from typing import List, Optional

from ..core.exceptions import NotFoundError
from ..db import tables
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Staff, Student

logger = logging.getLogger(__name__)


class StaffDirectory:
    """
    Lookups over the 'staffs' table, plus the staff deletion cascade.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def find_by_staff_id(self, staff_id: str) -> Optional[Staff]:
        row = await self.db_client.select_one(tables.STAFFS, {"staff_id": staff_id})
        return Staff(**row) if row else None

    async def get_staff(self, staff_id: str) -> Staff:
        staff = await self.find_by_staff_id(staff_id)
        if staff is None:
            raise NotFoundError("Staff member not found.")
        return staff

    async def list_staff(self) -> List[Staff]:
        rows = await self.db_client.select(tables.STAFFS, order_by=["staff_id"])
        return [Staff(**row) for row in rows]

    async def delete_staff(self, staff_id: str) -> int:
        """
        Deletes a staff member and prunes their entries from every attendance
        day. Returns the number of staff members left.
        """
        await self.get_staff(staff_id)

        async with self.db_client.transaction() as tx:
            pruned = await tx.delete(tables.STAFF_ATTENDANCE_STATUSES, {"staff_id": staff_id})
            await tx.delete(tables.STAFFS, {"staff_id": staff_id})
        logger.info(f"Staff member '{staff_id}' deleted, {len(pruned)} attendance entries pruned.")

        return await self.db_client.count(tables.STAFFS)


class StudentDirectory:
    """
    Lookups over the 'students' table, plus the student deletion cascade.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def find_by_admission_number(self, admission_number: str) -> Optional[Student]:
        row = await self.db_client.select_one(tables.STUDENTS, {"admission_number": admission_number})
        return Student(**row) if row else None

    async def get_student(self, admission_number: str) -> Student:
        student = await self.find_by_admission_number(admission_number)
        if student is None:
            raise NotFoundError("Student not found.")
        return student

    async def list_students(self) -> List[Student]:
        rows = await self.db_client.select(tables.STUDENTS, order_by=["admission_number"])
        return [Student(**row) for row in rows]

    async def delete_student(self, admission_number: str):
        """Deletes a student together with all of their attendance rows."""
        async with self.db_client.transaction() as tx:
            removed_records = await tx.delete(tables.STUDENT_ATTENDANCES, {"admission_number": admission_number})
            deleted = await tx.delete(tables.STUDENTS, {"admission_number": admission_number})
            if not deleted:
                raise NotFoundError("Student not found.")
        logger.info(f"Student '{admission_number}' deleted with {len(removed_records)} attendance records.")
