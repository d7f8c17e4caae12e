"""
Family and student schemas.
"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field


class FamilyCreate(BaseModel):
    name: str
    billing_email: Optional[str] = None
    primary_holder_id: Optional[int] = None
    member_ids: List[int] = Field(default_factory=list)


class FamilyMember(BaseModel):
    id: int
    full_name: str
    email: str
    role: str

    model_config = {"from_attributes": True}


class FamilyResponse(BaseModel):
    id: int
    name: str
    billing_email: Optional[str] = None
    primary_holder_id: Optional[int] = None
    members: List[FamilyMember] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class StudentResponse(BaseModel):
    id: int
    profile_id: int
    full_name: Optional[str] = None
    family_id: Optional[int] = None
    belt_rank_id: Optional[int] = None
    date_of_birth: Optional[date] = None
    is_active: bool
