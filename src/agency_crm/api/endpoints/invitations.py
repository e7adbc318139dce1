import logging
import secrets
from datetime import datetime, timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.agency_crm import models, schemas
from src.agency_crm.api.deps import get_current_agency, get_current_user, require_agency_admin
from src.agency_crm.core.database import get_db
from src.agency_crm.services.audit import audit_log
from src.agency_crm.services.seat_limit import get_seat_usage

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["Invitations"])

VALID_ROLES = ("admin", "agent", "staff", "manager")
INVITATION_TTL = timedelta(days=7)


@router.post("", response_model=schemas.InviteUsersResponse)
def invite_users(
    request: schemas.InviteUsersRequest,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    membership: models.AgencyMember = Depends(require_agency_admin),
    db: Session = Depends(get_db),
):
    """
    Invite one or more agents to the caller's agency.

    Only owners and admins can invite. Addresses that already have a pending
    invitation or an account are skipped. The remaining invitations must fit
    in the agency's free seats; the seat count and the inserts happen under
    the agency row lock.
    """
    if request.role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role specified")

    email_list = request.email_list()
    now = datetime.utcnow()

    logger.info(
        f"Processing invitations: agency={agency.id} inviter={current_user.id} "
        f"count={len(email_list)} role={request.role}"
    )

    # Lock first so the seat counts below cannot go stale before the insert
    usage = get_seat_usage(db, agency, now=now, lock=True)

    already_invited = [
        inv.email
        for inv in db.query(models.UserInvitation).filter(
            models.UserInvitation.agency_id == agency.id,
            models.UserInvitation.email.in_(email_list),
            models.UserInvitation.accepted_at.is_(None),
            models.UserInvitation.expires_at > now,
        )
    ]
    existing_users = [
        p.email.lower()
        for p in db.query(models.Profile).filter(
            func.lower(models.Profile.email).in_(email_list)
        )
    ]

    new_emails = [
        e for e in email_list if e not in already_invited and e not in existing_users
    ]

    if not new_emails:
        db.rollback()
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "All provided email addresses are already invited or are existing users",
                "details": {
                    "already_invited": already_invited,
                    "existing_users": existing_users,
                },
            },
        )

    seat_details = usage.usage_details(len(new_emails))
    logger.info(f"Seat availability check: {seat_details}")

    if not usage.can_invite(len(new_emails)):
        db.rollback()
        raise HTTPException(
            status_code=400,
            detail=(
                f"Seat limit exceeded. {seat_details}. "
                "Increase seats in Billing to invite more agents."
            ),
        )

    invitations = [
        models.UserInvitation(
            agency_id=agency.id,
            email=email,
            role=request.role,
            invited_by=current_user.id,
            token=secrets.token_urlsafe(32),
            expires_at=now + INVITATION_TTL,
        )
        for email in new_emails
    ]
    db.add_all(invitations)
    db.flush()

    for invitation in invitations:
        audit_log(
            db,
            actor_id=current_user.id,
            agency_id=agency.id,
            entity="user_invitation",
            action="created",
            entity_id=invitation.id,
            diff={
                "email": invitation.email,
                "role": invitation.role,
                "invited_count": len(new_emails),
            },
        )

    db.commit()

    logger.info(
        f"Invitations created: created={len(new_emails)} "
        f"skipped={len(email_list) - len(new_emails)}"
    )

    return {
        "success": True,
        "created": len(new_emails),
        "skipped": len(email_list) - len(new_emails),
        "details": {
            "created_invitations": new_emails,
            "already_invited": already_invited,
            "existing_users": existing_users,
            "seat_usage": seat_details,
        },
    }


@router.get("", response_model=List[schemas.InvitationResponse])
def list_pending_invitations(
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Pending (not accepted, not expired) invitations of the caller's agency."""
    return (
        db.query(models.UserInvitation)
        .filter(
            models.UserInvitation.agency_id == agency.id,
            models.UserInvitation.accepted_at.is_(None),
            models.UserInvitation.expires_at > datetime.utcnow(),
        )
        .order_by(models.UserInvitation.created_at.desc())
        .all()
    )


@router.delete("/{invitation_id}")
def revoke_invitation(
    invitation_id: str,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    membership: models.AgencyMember = Depends(require_agency_admin),
    db: Session = Depends(get_db),
):
    """Revoke an invitation, freeing its seat."""
    invitation = (
        db.query(models.UserInvitation)
        .filter(
            models.UserInvitation.id == invitation_id,
            models.UserInvitation.agency_id == agency.id,
        )
        .first()
    )
    if not invitation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found"
        )
    if invitation.accepted_at is not None:
        raise HTTPException(
            status_code=400, detail="Invitation has already been accepted"
        )

    db.delete(invitation)
    audit_log(
        db,
        actor_id=current_user.id,
        agency_id=agency.id,
        entity="user_invitation",
        action="revoked",
        entity_id=invitation_id,
        diff={"email": invitation.email},
    )
    db.commit()

    logger.info(f"Invitation {invitation_id} revoked by {current_user.id}")
    return {"message": "Invitation revoked successfully"}
