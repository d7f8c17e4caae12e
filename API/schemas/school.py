"""
School schemas for the platform admin API and the public school resolver.
"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, field_validator
import re


RESERVED_SUBDOMAINS = {
    'www', 'app', 'api', 'admin', 'mail', 'billing', 'login', 'signup',
    'register', 'health', 'docs', 'static', 'support', 'help', 'dashboard',
}


def validate_subdomain(v: str) -> str:
    v = v.strip().lower()
    if not re.match(r'^[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$', v):
        raise ValueError(
            "Subdomain may only contain lowercase letters, digits and '-', "
            "3-63 characters, and cannot start or end with '-'"
        )
    if v in RESERVED_SUBDOMAINS:
        raise ValueError(f"'{v}' is a reserved subdomain")
    return v


class SchoolCreate(BaseModel):
    """Create a new school together with its owner."""

    name: str
    subdomain: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    subscription_plan: str = "trial"
    billing_day: Optional[int] = None

    # Initial owner
    owner_email: str
    owner_password: str
    owner_full_name: str

    @field_validator("subdomain")
    @classmethod
    def check_subdomain(cls, v: str) -> str:
        return validate_subdomain(v)

    @field_validator("subscription_plan")
    @classmethod
    def check_plan(cls, v: str) -> str:
        if v not in ("founding_partner", "standard", "trial"):
            raise ValueError("Plan must be founding_partner, standard or trial")
        return v

    @field_validator("billing_day")
    @classmethod
    def check_billing_day(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1 <= v <= 28:
            raise ValueError("Billing day must be between 1 and 28")
        return v

    @field_validator("owner_email")
    @classmethod
    def check_owner_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid e-mail address")
        return v

    @field_validator("owner_password")
    @classmethod
    def check_owner_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


class SchoolResponse(BaseModel):
    """School info response."""

    id: int
    name: str
    subdomain: str
    logo_url: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    subscription_plan: str
    subscription_status: str
    trial_ends_at: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    billing_day: Optional[int] = None
    stripe_account_id: Optional[str] = None
    is_active: bool
    created_at: datetime

    # Stats (filled by service)
    profiles_count: Optional[int] = None
    students_count: Optional[int] = None

    model_config = {"from_attributes": True}


class SchoolListResponse(BaseModel):
    """List of schools response."""

    data: List[SchoolResponse]
    total: int


class SchoolPublicInfo(BaseModel):
    """
    Minimal school info for the login page.
    Only shows name and logo - no billing data.
    """

    id: int
    name: str
    subdomain: str
    logo_url: Optional[str] = None
    accepting_payments: bool = False


class SubscriptionOverride(BaseModel):
    """Platform admin override of a school's plan."""

    plan: str
    trial_ends_at: Optional[datetime] = None
    billing_day: Optional[int] = None

    @field_validator("plan")
    @classmethod
    def check_plan(cls, v: str) -> str:
        if v not in ("founding_partner", "standard", "trial"):
            raise ValueError("Plan must be founding_partner, standard or trial")
        return v

    @field_validator("billing_day")
    @classmethod
    def check_billing_day(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1 <= v <= 28:
            raise ValueError("Billing day must be between 1 and 28")
        return v
