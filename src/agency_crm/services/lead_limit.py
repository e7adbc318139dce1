"""
Monthly lead allowance queries.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from src.agency_crm import models
from src.agency_crm.utils.plan_helpers import month_start, remaining_leads


def count_leads_this_month(
    db: Session, agency_id: str, now: Optional[datetime] = None
) -> int:
    now = now or datetime.utcnow()
    return (
        db.query(models.Lead)
        .filter(
            models.Lead.agency_id == agency_id,
            models.Lead.created_at >= month_start(now),
        )
        .count()
    )


def remaining_lead_allowance(
    db: Session, agency: models.Agency, now: Optional[datetime] = None
) -> int:
    """Leads the agency may still add this month under its plan."""
    return remaining_leads(agency.plan, count_leads_this_month(db, agency.id, now))
