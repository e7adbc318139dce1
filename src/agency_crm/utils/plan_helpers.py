"""
Per-plan lead allowance.

Each plan may add a fixed number of leads per calendar month. Manual leads
and imported leads draw from the same allowance.
"""

from datetime import datetime
from typing import Optional

FREE_LEAD_LIMIT = 50

LEAD_LIMITS = {
    "free": FREE_LEAD_LIMIT,
    "starter": 500,
    "professional": 2000,
    # Enterprise is "unlimited"
    "enterprise": 999999,
}


def lead_limit_for_plan(plan: Optional[str]) -> int:
    """Monthly lead limit; unknown plans get the free allowance."""
    return LEAD_LIMITS.get(plan or "free", LEAD_LIMITS["free"])


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def remaining_leads(plan: Optional[str], created_this_month: int) -> int:
    return max(0, lead_limit_for_plan(plan) - (created_this_month or 0))


def lead_limit_message(plan: Optional[str]) -> str:
    return (
        f"Monthly lead limit reached ({lead_limit_for_plan(plan)} leads on the "
        f"{plan or 'free'} plan). Upgrade your plan in Billing to add more leads."
    )
