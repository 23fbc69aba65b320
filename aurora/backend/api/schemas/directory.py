from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ...models.db_models import Staff, Student


class StaffResponse(BaseModel):
    staff_id: str = Field(alias="staffId")
    name: str
    subject: Optional[str] = None
    class_name: Optional[str] = Field(None, alias="class")
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_staff(cls, staff: Staff) -> "StaffResponse":
        return cls.model_validate(staff.model_dump())


class StudentResponse(BaseModel):
    admission_number: str = Field(alias="admissionNumber")
    name: str
    class_name: Optional[str] = Field(None, alias="class")
    gender: Optional[str] = None
    age: Optional[int] = None
    parent_phone: Optional[str] = Field(None, alias="parentPhone")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_student(cls, student: Student) -> "StudentResponse":
        return cls.model_validate(student.model_dump())


class StaffDeletedResponse(BaseModel):
    message: str = "Staff member deleted successfully."
    total_staff: int = Field(alias="totalStaff")

    model_config = ConfigDict(populate_by_name=True)


class StudentDeletedResponse(BaseModel):
    message: str = "Student deleted successfully."
