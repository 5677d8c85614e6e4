from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Literal, Optional

from models.profile_change import ProfileChangeStatus


class ConfigResponse(BaseModel):
    config_key: str
    config_value: Optional[str] = None
    value_type: str
    category: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConfigUpdate(BaseModel):
    value: str


ConfigGroups = Dict[str, List[ConfigResponse]]


class DueDays(BaseModel):
    due_days: int


class LateFee(BaseModel):
    late_fee_percent: float


# Fields users may ask HR to change on their own account
PROFILE_FIELDS = ("email", "first_name", "last_name", "phone")


class ProfileChangeCreate(BaseModel):
    field_name: Literal["email", "first_name", "last_name", "phone"]
    new_value: str = Field(..., min_length=1, max_length=255)


class ProfileChangeReview(BaseModel):
    action: Literal["approve", "reject"]
    comment: Optional[str] = None


class ProfileChangeResponse(BaseModel):
    id: int
    user_id: int
    username: Optional[str] = None
    change_type: str
    field_name: str
    old_value: Optional[str] = None
    new_value: str
    status: ProfileChangeStatus
    hr_comment: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
