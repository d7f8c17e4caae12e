"""
Subscription plans and the platform fee

Plan pricing and the platform fee taken on school-collected payments
are defined in one place.

Usage:
    from core.subscription_plans import PLANS, calculate_platform_fee

    fee = calculate_platform_fee(5000, school.subscription_plan)
"""

from dataclasses import dataclass
from typing import Dict, Optional


# Flat fee per student payment for founding partner schools (cents)
FOUNDING_PARTNER_FEE_CENTS = 100
PLATFORM_FEE_TAX_RATE = 0.0

DEFAULT_TRIAL_DAYS = 30


# ==================== PLAN DEFINITIONS ====================

PLANS: Dict[str, dict] = {
    "trial": {
        "name": "Trial",
        "description": "Free trial of the full platform",
        "price_monthly": 0,
        "per_payment_fee": 0,
        "sort_order": 1,
    },
    "standard": {
        "name": "Standard",
        "description": "Monthly subscription, no fee on student payments",
        "price_monthly": 9900,  # cents
        "per_payment_fee": 0,
        "sort_order": 2,
    },
    "founding_partner": {
        "name": "Founding Partner",
        "description": "Lifetime access, flat fee per student payment",
        "price_monthly": 0,
        "per_payment_fee": FOUNDING_PARTNER_FEE_CENTS,
        "sort_order": 3,
    },
}


def get_monthly_price(plan_key: str) -> int:
    """Monthly platform price for manual payments; unknown plans bill as standard."""
    plan = PLANS.get(plan_key)
    if not plan or plan["price_monthly"] <= 0:
        return PLANS["standard"]["price_monthly"]
    return plan["price_monthly"]


# ==================== PLATFORM FEE ====================

@dataclass(frozen=True)
class PlatformFee:
    platform_fee: int
    net_amount: int


def calculate_platform_fee(gross_cents: int, plan: Optional[str]) -> PlatformFee:
    """
    Split a student payment between the platform and the school.

    founding_partner: flat fee plus tax, never more than the payment itself.
    Every other plan (including unknown ones) pays no per-payment fee.
    """
    if gross_cents < 0:
        raise ValueError("gross_cents must be >= 0")

    if plan == "founding_partner":
        base = FOUNDING_PARTNER_FEE_CENTS
        fee = base + int(round(base * PLATFORM_FEE_TAX_RATE))
        fee = min(fee, gross_cents)
    else:
        fee = 0

    return PlatformFee(platform_fee=fee, net_amount=gross_cents - fee)


@dataclass(frozen=True)
class PaymentAcceptance:
    allowed: bool
    reason: Optional[str] = None


def can_accept_payments(school) -> PaymentAcceptance:
    """A school can collect student payments once its Connect account exists."""
    if school is None or not school.stripe_account_id:
        return PaymentAcceptance(
            False,
            "School has not set up payment processing. Please contact the school."
        )
    return PaymentAcceptance(True)
