"""
Platform admin - billing overview and revenue.
Endpoint: /api/admin/billing/...
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from database.models import Profile
from core.dependencies import get_platform_admin
from services.billing import BillingService

router = APIRouter()


@router.get("/overview")
async def get_all_schools_billing(
    admin: Profile = Depends(get_platform_admin),
    db: Session = Depends(get_db),
):
    """Overview of all schools with billing status."""
    data = BillingService(db).get_all_schools_billing()
    return {"data": data, "count": len(data)}


@router.get("/revenue")
async def get_revenue_report(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    group_by: str = Query("monthly", pattern="^(monthly|yearly)$"),
    admin: Profile = Depends(get_platform_admin),
    db: Session = Depends(get_db),
):
    """Revenue report with chart data and per-school breakdown (cents)."""
    return BillingService(db).get_revenue_report(date_from, date_to, group_by)
