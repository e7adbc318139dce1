import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.agency_crm import models, schemas
from src.agency_crm.api.deps import get_current_agency, get_current_user
from src.agency_crm.core.database import get_db
from src.agency_crm.services.audit import audit_log

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])

CAMPAIGN_TYPES = (
    "facebook_ads",
    "google_ads",
    "linkedin",
    "referral",
    "website",
    "email",
    "other",
)
CAMPAIGN_STATUSES = ("draft", "active", "paused", "completed")


def _validate_campaign(campaign_type, campaign_status, start_date, end_date):
    if campaign_type not in CAMPAIGN_TYPES:
        raise HTTPException(status_code=400, detail="Invalid campaign type")
    if campaign_status not in CAMPAIGN_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid campaign status")
    if start_date and end_date and end_date < start_date:
        raise HTTPException(
            status_code=400, detail="End date must be on or after the start date"
        )


def get_agency_campaign(db: Session, campaign_id: str, agency_id: str) -> models.Campaign:
    campaign = (
        db.query(models.Campaign)
        .filter(
            models.Campaign.id == campaign_id,
            models.Campaign.agency_id == agency_id,
        )
        .first()
    )
    if not campaign:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found"
        )
    return campaign


def _campaign_response(campaign: models.Campaign, lead_count: int = 0):
    response = schemas.CampaignResponse.model_validate(campaign)
    response.lead_count = lead_count
    return response


@router.post(
    "",
    response_model=schemas.CampaignResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_campaign(
    data: schemas.CampaignCreate,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Create a marketing campaign for the caller's agency."""
    _validate_campaign(data.campaign_type, data.status, data.start_date, data.end_date)

    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Campaign name is required")

    campaign = models.Campaign(agency_id=agency.id, **data.model_dump())
    campaign.name = name
    db.add(campaign)
    db.flush()

    audit_log(
        db,
        actor_id=current_user.id,
        agency_id=agency.id,
        entity="campaign",
        action="created",
        entity_id=campaign.id,
        diff={"name": campaign.name, "campaign_type": campaign.campaign_type},
    )
    db.commit()
    db.refresh(campaign)

    logger.info(f"Created campaign {campaign.id} ({campaign.name}) for agency {agency.id}")
    return _campaign_response(campaign)


@router.get("", response_model=List[schemas.CampaignResponse])
def list_campaigns(
    status: Optional[str] = Query(None),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """The agency's campaigns, newest first, with their lead counts."""
    query = db.query(models.Campaign).filter(models.Campaign.agency_id == agency.id)
    if status:
        query = query.filter(models.Campaign.status == status)
    campaigns = query.order_by(models.Campaign.created_at.desc(), models.Campaign.id).all()

    lead_counts = dict(
        db.query(models.Lead.campaign_id, func.count(models.Lead.id))
        .filter(
            models.Lead.agency_id == agency.id,
            models.Lead.campaign_id.isnot(None),
        )
        .group_by(models.Lead.campaign_id)
        .all()
    )
    return [_campaign_response(c, lead_counts.get(c.id, 0)) for c in campaigns]


@router.patch("/{campaign_id}", response_model=schemas.CampaignResponse)
def update_campaign(
    campaign_id: str,
    data: schemas.CampaignUpdate,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Update a campaign; only the fields present in the body change."""
    campaign = get_agency_campaign(db, campaign_id, agency.id)
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise HTTPException(status_code=400, detail="Campaign name is required")

    _validate_campaign(
        changes.get("campaign_type", campaign.campaign_type),
        changes.get("status", campaign.status),
        changes.get("start_date", campaign.start_date),
        changes.get("end_date", campaign.end_date),
    )

    for field, value in changes.items():
        setattr(campaign, field, value)

    audit_log(
        db,
        actor_id=current_user.id,
        agency_id=agency.id,
        entity="campaign",
        action="updated",
        entity_id=campaign.id,
        diff={k: str(v) if v is not None else None for k, v in changes.items()},
    )
    db.commit()
    db.refresh(campaign)

    lead_count = (
        db.query(models.Lead).filter(models.Lead.campaign_id == campaign.id).count()
    )
    logger.info(f"Campaign {campaign.id} updated: {sorted(changes)}")
    return _campaign_response(campaign, lead_count)
