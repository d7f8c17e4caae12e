"""
Payment schemas: pay requests and saved cards.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class PayRequest(BaseModel):
    """Body of /api/pay/event, /api/pay/belt-test and /api/pay/custom-charge."""

    payment_id: int
    payment_method_id: Optional[str] = None
    save_card: bool = False


class MonthlyPayRequest(BaseModel):
    payment_method_id: Optional[str] = None


class PaymentMethodOut(BaseModel):
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


class PaymentMethodList(BaseModel):
    payment_methods: List[PaymentMethodOut] = Field(default_factory=list)
    default_payment_method: Optional[str] = None


class SetupIntentResponse(BaseModel):
    client_secret: str
    setup_intent_id: str
    customer_id: str
    entity_type: str
    entity_id: int
