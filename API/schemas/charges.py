"""
Custom charge schemas.
"""

from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class ChargeRecipient(BaseModel):
    id: int
    type: Literal["family", "profile"]


class CustomChargeCreate(BaseModel):
    """Either a list of recipients or a single family_id."""

    description: str
    amount: int
    due_date: Optional[date] = None
    recipients: List[ChargeRecipient] = Field(default_factory=list)
    family_id: Optional[int] = None

    @field_validator("description")
    @classmethod
    def check_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        return v

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        return v

    @model_validator(mode="after")
    def check_recipients(self):
        if not self.recipients and self.family_id is None:
            raise ValueError("recipients or family_id is required")
        return self

    def recipient_list(self) -> List[dict]:
        recipients = [r.model_dump() for r in self.recipients]
        if self.family_id is not None:
            recipients.append({"id": self.family_id, "type": "family"})
        return recipients


class CustomChargeResponse(BaseModel):
    id: int
    family_id: Optional[int] = None
    profile_id: Optional[int] = None
    description: str
    amount: int
    due_date: Optional[date] = None
    status: str
    paid_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
