import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from src.agency_crm import models
from src.agency_crm.core.database import get_db
from src.agency_crm.core.jwt import verify_token

logger = logging.getLogger("uvicorn.error")

# Tokens come from the identity provider; tokenUrl only documents the flow.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

INVITER_ROLES = ("owner", "admin")


def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> models.Profile:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    user = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if user is None:
        raise credentials_exception
    return user


def get_current_agency(
    current_user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> models.Agency:
    """Resolve the caller's agency. Every tenant-scoped route depends on this."""
    if not current_user.agency_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User not associated with an agency",
        )
    agency = (
        db.query(models.Agency)
        .filter(models.Agency.id == current_user.agency_id)
        .first()
    )
    if not agency:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User not associated with an agency",
        )
    return agency


def get_membership(db: Session, agency_id: str, user_id: str):
    return (
        db.query(models.AgencyMember)
        .filter(
            models.AgencyMember.agency_id == agency_id,
            models.AgencyMember.user_id == user_id,
        )
        .first()
    )


def require_agency_admin(
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
) -> models.AgencyMember:
    """Ensure the caller is an owner or admin of their agency. Raises 403 otherwise."""
    membership = get_membership(db, agency.id, current_user.id)
    if not membership or membership.role not in INVITER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions to invite users",
        )
    return membership
