# aurora/backend/models/db_models.py

import json
import logging
from datetime import date
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class AttendanceStatus(str, Enum):
    """Statuses accepted on write. Reads tolerate any string for legacy rows."""
    PRESENT = "present"
    ABSENT = "absent"


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    STUDENT = "student"


class User(BaseModel):
    """
    Represents a signed-in user, mapping to the 'users' table without the password hash.
    """
    id: int = Field(..., description="Primary key of the user")
    username: str
    role: Role
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    staff_id: Optional[str] = Field(None, description="Set for staff users, links to 'staffs'")
    admission_number: Optional[str] = Field(None, description="Set for student users, links to 'students'")
    class_name: Optional[str] = None


class UserAccount(User):
    """A 'users' row including the bcrypt password hash. Never leaves the service layer."""
    password_hash: str


class Staff(BaseModel):
    """Represents a staff member, mapping to the 'staffs' table."""
    staff_id: str
    name: str
    subject: Optional[str] = None
    class_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None


class Student(BaseModel):
    """Represents a student, mapping to the 'students' table."""
    admission_number: str
    name: str
    class_name: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[int] = None
    parent_phone: Optional[str] = None


class StaffStatusEntry(BaseModel):
    """One staff member's status inside a day record."""
    staff_id: str = Field(..., validation_alias=AliasChoices("staff_id", "staffId", "id"))
    status: str


class StaffAttendanceDay(BaseModel):
    """
    A staff attendance day record: one calendar date and at most one status
    per staff member. Staff members missing from `statuses` are unrecorded.
    """
    date: date
    statuses: List[StaffStatusEntry] = Field(default_factory=list)

    @field_validator("statuses", mode="before")
    @classmethod
    def parse_serialized_statuses(cls, value: Any) -> List[Any]:
        # Older rows carry the collection as a JSON string.
        if value is None:
            return []
        if isinstance(value, (str, bytes)):
            try:
                value = json.loads(value)
            except ValueError:
                logger.warning("Could not parse serialized staff statuses, treating the day as empty.")
                return []
        if not isinstance(value, list):
            logger.warning(f"Staff statuses are not a list ({type(value).__name__}), treating the day as empty.")
            return []

        entries: List[StaffStatusEntry] = []
        seen = set()
        for item in value:
            try:
                entry = item if isinstance(item, StaffStatusEntry) else StaffStatusEntry.model_validate(item)
            except ValidationError:
                logger.warning(f"Skipping malformed staff status entry: {item!r}")
                continue
            # One status per member and day, the first one recorded wins.
            if entry.staff_id in seen:
                logger.warning(f"Skipping duplicate staff status entry for '{entry.staff_id}'.")
                continue
            seen.add(entry.staff_id)
            entries.append(entry)
        return entries

    def entry_for(self, staff_id: str) -> Optional[StaffStatusEntry]:
        for entry in self.statuses:
            if entry.staff_id == staff_id:
                return entry
        return None


class StudentAttendanceRecord(BaseModel):
    """
    A single student attendance row, mapping to the 'student_attendances' table.
    Unique per (admission_number, date).
    """
    id: Optional[int] = None
    admission_number: str
    date: date
    status: str
