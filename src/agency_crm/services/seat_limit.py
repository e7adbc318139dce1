"""
Seat usage queries.

Counts members and pending invitations for an agency and feeds them to the
shared arithmetic in `utils.seat_helpers`.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from src.agency_crm import models
from src.agency_crm.utils.seat_helpers import SeatUsage, calculate_seat_usage


def count_active_members(db: Session, agency_id: str) -> int:
    return (
        db.query(models.AgencyMember)
        .filter(models.AgencyMember.agency_id == agency_id)
        .count()
    )


def count_pending_invitations(
    db: Session, agency_id: str, now: Optional[datetime] = None
) -> int:
    now = now or datetime.utcnow()
    return (
        db.query(models.UserInvitation)
        .filter(
            models.UserInvitation.agency_id == agency_id,
            models.UserInvitation.accepted_at.is_(None),
            models.UserInvitation.expires_at > now,
        )
        .count()
    )


def lock_agency(db: Session, agency_id: str) -> models.Agency:
    """Re-read the agency row FOR UPDATE (held until commit/rollback)."""
    return (
        db.query(models.Agency)
        .filter(models.Agency.id == agency_id)
        .with_for_update()
        .one()
    )


def get_seat_usage(
    db: Session,
    agency: models.Agency,
    now: Optional[datetime] = None,
    lock: bool = False,
) -> SeatUsage:
    """Count members and pending invitations for `agency`.

    With `lock=True` both counts, and whatever the caller inserts before
    committing, happen under the agency row lock. Backends without row
    locks (SQLite) ignore the hint.
    """
    if lock:
        agency = lock_agency(db, agency.id)

    return calculate_seat_usage(
        agency.seats or 1,
        count_active_members(db, agency.id),
        count_pending_invitations(db, agency.id, now),
    )
