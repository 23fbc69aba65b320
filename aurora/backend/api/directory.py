from fastapi import APIRouter, Depends, Request

from ..models.db_models import Role, User
from ..services.directory_service import StaffDirectory, StudentDirectory
from .auth import require_roles
from .dependencies import get_staff_directory, get_student_directory
from .schemas.directory import StaffDeletedResponse, StaffResponse, StudentDeletedResponse, StudentResponse
from .utilities.limiter import limiter

router = APIRouter(tags=["Directory"])


@router.get("/staff/{staff_id}", response_model=StaffResponse)
@limiter.limit("60/minute")
async def get_staff(
    request: Request,
    staff_id: str,
    user: User = Depends(require_roles(Role.ADMIN)),
    directory: StaffDirectory = Depends(get_staff_directory),
):
    return StaffResponse.from_staff(await directory.get_staff(staff_id))


@router.delete("/staff/{staff_id}", response_model=StaffDeletedResponse)
@limiter.limit("30/minute")
async def delete_staff(
    request: Request,
    staff_id: str,
    user: User = Depends(require_roles(Role.ADMIN)),
    directory: StaffDirectory = Depends(get_staff_directory),
):
    """Deletes the staff member and removes their entries from every attendance day."""
    remaining = await directory.delete_staff(staff_id)
    return StaffDeletedResponse(total_staff=remaining)


@router.get("/students/{admission_number}", response_model=StudentResponse)
@limiter.limit("60/minute")
async def get_student(
    request: Request,
    admission_number: str,
    user: User = Depends(require_roles(Role.ADMIN)),
    directory: StudentDirectory = Depends(get_student_directory),
):
    return StudentResponse.from_student(await directory.get_student(admission_number))


@router.delete("/students/{admission_number}", response_model=StudentDeletedResponse)
@limiter.limit("30/minute")
async def delete_student(
    request: Request,
    admission_number: str,
    user: User = Depends(require_roles(Role.ADMIN)),
    directory: StudentDirectory = Depends(get_student_directory),
):
    await directory.delete_student(admission_number)
    return StudentDeletedResponse()
