import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from src.agency_crm import models, schemas
from src.agency_crm.api.deps import get_current_agency, get_current_user
from src.agency_crm.api.endpoints.campaigns import get_agency_campaign
from src.agency_crm.core.database import get_db
from src.agency_crm.services.audit import audit_log
from src.agency_crm.services.lead_limit import remaining_lead_allowance
from src.agency_crm.utils.plan_helpers import lead_limit_message

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["Leads"])

# Pipeline columns, in board order
LEAD_STATUSES = ("new", "contacted", "booked", "showed", "won", "lost")


def _get_lead(db: Session, lead_id: str, agency_id: str) -> models.Lead:
    lead = (
        db.query(models.Lead)
        .filter(models.Lead.id == lead_id, models.Lead.agency_id == agency_id)
        .first()
    )
    if not lead:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    return lead


@router.post(
    "",
    response_model=schemas.LeadResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_lead(
    data: schemas.LeadCreate,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """
    Add a single lead to the caller's agency.

    Counts against the plan's monthly lead allowance, the same as imported
    leads. A campaign, when given, must belong to the agency.
    """
    if remaining_lead_allowance(db, agency) <= 0:
        logger.info(f"Lead limit reached for agency {agency.id} (plan={agency.plan})")
        raise HTTPException(status_code=403, detail=lead_limit_message(agency.plan))

    if data.campaign_id:
        get_agency_campaign(db, data.campaign_id, agency.id)

    first_name = data.first_name.strip()
    last_name = data.last_name.strip()
    lead = models.Lead(
        agency_id=agency.id,
        campaign_id=data.campaign_id,
        first_name=first_name,
        last_name=last_name,
        full_name=f"{first_name} {last_name}".strip(),
        email=data.email.lower(),
        phone=(data.phone or "").strip() or None,
        source=data.source,
        status="new",
        notes=data.notes,
    )
    db.add(lead)
    db.flush()

    audit_log(
        db,
        actor_id=current_user.id,
        agency_id=agency.id,
        entity="lead",
        action="created",
        entity_id=lead.id,
        diff={"email": lead.email, "source": lead.source, "campaign_id": lead.campaign_id},
    )
    db.commit()
    db.refresh(lead)

    logger.info(f"Lead {lead.id} created for agency {agency.id} by {current_user.id}")
    return lead


@router.get("", response_model=schemas.PaginatedLeadResponse)
def list_leads(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    status: Optional[str] = Query(None),
    import_job_id: Optional[str] = Query(None),
    campaign_id: Optional[str] = Query(None),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """List the caller's agency leads, newest first."""
    query = db.query(models.Lead).filter(models.Lead.agency_id == agency.id)
    if status:
        query = query.filter(models.Lead.status == status)
    if import_job_id:
        query = query.filter(models.Lead.import_job_id == import_job_id)
    if campaign_id:
        query = query.filter(models.Lead.campaign_id == campaign_id)

    total = query.count()
    leads = (
        query.order_by(models.Lead.created_at.desc(), models.Lead.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"total": total, "limit": limit, "offset": offset, "leads": leads}


@router.patch("/{lead_id}", response_model=schemas.LeadResponse)
def update_lead_status(
    lead_id: str,
    data: schemas.LeadStatusUpdate,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Move a lead to another pipeline stage."""
    if data.status not in LEAD_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid lead status")

    lead = _get_lead(db, lead_id, agency.id)
    previous = lead.status
    lead.status = data.status

    audit_log(
        db,
        actor_id=current_user.id,
        agency_id=agency.id,
        entity="lead",
        action="status_changed",
        entity_id=lead.id,
        diff={"from": previous, "to": data.status},
    )
    db.commit()
    db.refresh(lead)

    logger.info(f"Lead {lead.id} moved from {previous} to {lead.status}")
    return lead
