from pydantic import AfterValidator, BaseModel, EmailStr, Field
from datetime import datetime
from typing import Annotated, Optional

from models.users import ROLE_VALUES


def _check_role(value: str) -> str:
    value = value.strip().lower()
    if value not in ROLE_VALUES:
        raise ValueError(f"Unknown role '{value}'")
    return value


RoleName = Annotated[str, AfterValidator(_check_role)]


# Schema for user authentication credentials
class UserLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# Schema for administrative user creation
class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: RoleName
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    organization_id: Optional[int] = None


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    role: Optional[RoleName] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    organization_id: Optional[int] = None
    is_active: Optional[bool] = None


# Output schema for user profile details
class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    organization_id: Optional[int] = None
    organization_name: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class InstructorSummary(BaseModel):
    id: int
    username: str
    full_name: str
    email: str

    class Config:
        from_attributes = True


# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[datetime] = None
    user: UserResponse


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class OrganizationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact_name: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None


class OrganizationCreate(OrganizationBase):
    pass


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_name: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None


class OrganizationResponse(OrganizationBase):
    id: int
    contact_email: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
