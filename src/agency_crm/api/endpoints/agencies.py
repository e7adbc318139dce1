import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.agency_crm import models, schemas
from src.agency_crm.api.deps import get_current_agency, get_current_user, get_membership
from src.agency_crm.core.database import get_db
from src.agency_crm.services.seat_limit import (
    count_active_members,
    count_pending_invitations,
    get_seat_usage,
)
from src.agency_crm.utils.seat_helpers import invite_cap

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(tags=["Agencies"])


@router.post(
    "/agencies",
    response_model=schemas.AgencyResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_agency(
    data: schemas.AgencyCreate,
    current_user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Onboarding: create an agency for the caller.

    The caller becomes the owner and first member. New agencies start on the
    free plan with a single seat.
    """
    if current_user.agency_id:
        raise HTTPException(
            status_code=400, detail="You already belong to an agency"
        )

    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Agency name is required")

    agency = models.Agency(
        name=name, owner_user_id=current_user.id, plan="free", seats=1
    )
    db.add(agency)
    db.flush()

    db.add(
        models.AgencyMember(agency_id=agency.id, user_id=current_user.id, role="owner")
    )
    current_user.agency_id = agency.id
    db.commit()
    db.refresh(agency)

    logger.info(f"Created agency {agency.id} ({agency.name}) for user {current_user.id}")
    return agency


@router.get("/agencies/me", response_model=schemas.AgencyResponse)
def get_my_agency(agency: models.Agency = Depends(get_current_agency)):
    return agency


@router.get("/agencies/me/seats", response_model=schemas.SeatUsageResponse)
def get_my_seat_usage(
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Seat usage for the caller's agency (members + pending invitations)."""
    return get_seat_usage(db, agency).as_dict()


@router.api_route("/seats/invite-cap-check", methods=["GET", "POST"])
async def invite_cap_check(
    request: Request,
    agency_id: str = Query(None),
    current_user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Check whether the given agency may send one more invitation.

    `agency_id` comes from the query string, or from the JSON body on POST.
    Agencies the caller is not a member of are reported as not found.
    """
    if not agency_id and request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            agency_id = body.get("agency_id")

    if not agency_id:
        return JSONResponse(status_code=400, content={"error": "missing_agency_id"})

    agency = db.query(models.Agency).filter(models.Agency.id == agency_id).first()
    if not agency or not get_membership(db, agency.id, current_user.id):
        return JSONResponse(status_code=404, content={"error": "not_found"})

    result = invite_cap(
        agency.seats,
        count_active_members(db, agency.id),
        count_pending_invitations(db, agency.id),
    )
    return schemas.InviteCapCheckResponse(**result)
