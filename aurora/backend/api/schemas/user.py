# aurora/backend/api/schemas/user.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SignInRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: int
    username: str
    role: str
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    staff_id: Optional[str] = Field(None, alias="staffId")
    admission_number: Optional[str] = Field(None, alias="admissionNumber")
    class_name: Optional[str] = Field(None, alias="class")

    model_config = ConfigDict(populate_by_name=True)


class SignInResponse(BaseModel):
    message: str = "Login successful"
    token: Token
    user: UserResponse


# Internal representation of JWT data
class TokenData(BaseModel):
    user_id: Optional[int] = None
    role: Optional[str] = None
