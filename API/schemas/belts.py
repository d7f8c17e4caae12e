"""
Belt rank, belt test fee and belt test payment schemas.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator


class BeltRankCreate(BaseModel):
    name: str
    color: Optional[str] = None
    sort_order: Optional[int] = None


class BeltRankResponse(BaseModel):
    id: int
    name: str
    color: Optional[str] = None
    sort_order: int

    model_config = {"from_attributes": True}


class BeltTestFeeCreate(BaseModel):
    from_belt_id: Optional[int] = None
    to_belt_id: Optional[int] = None
    fee: int
    description: Optional[str] = None

    @field_validator("fee")
    @classmethod
    def check_fee(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Fee must be greater than 0")
        return v


class BeltTestFeeUpdate(BaseModel):
    from_belt_id: Optional[int] = None
    to_belt_id: Optional[int] = None
    fee: Optional[int] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("fee")
    @classmethod
    def check_fee(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Fee must be greater than 0")
        return v


class BeltTestFeeResponse(BaseModel):
    id: int
    from_belt_id: Optional[int] = None
    to_belt_id: Optional[int] = None
    fee: int
    description: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}


class BeltTestIssue(BaseModel):
    student_profile_id: int
    target_belt_id: int


class BeltTestPaymentResponse(BaseModel):
    id: int
    belt_test_fee_id: Optional[int] = None
    student_profile_id: int
    family_id: Optional[int] = None
    profile_id: Optional[int] = None
    target_belt_id: Optional[int] = None
    amount: int
    description: Optional[str] = None
    status: str
    payment_intent_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PromoteRequest(BaseModel):
    belt_rank_id: int
