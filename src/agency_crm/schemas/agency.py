from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, model_validator


class AgencyCreate(BaseModel):
    name: str


class AgencyResponse(BaseModel):
    id: str
    name: str
    owner_user_id: str
    plan: str
    seats: int
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SeatUsageResponse(BaseModel):
    total_seats: int
    active_members: int
    pending_invitations: int
    available_seats: int
    can_invite_more: bool

    class Config:
        json_schema_extra = {
            "example": {
                "total_seats": 5,
                "active_members": 3,
                "pending_invitations": 1,
                "available_seats": 1,
                "can_invite_more": True,
            }
        }


class InviteCapCheckResponse(BaseModel):
    allowed: bool
    used: int
    cap: int


# Team Invitation Schemas
class InviteUsersRequest(BaseModel):
    email: Optional[EmailStr] = None
    emails: Optional[List[EmailStr]] = None  # For bulk invites
    role: str

    @model_validator(mode="after")
    def require_an_email(self):
        if not self.email and not self.emails:
            raise ValueError("No email addresses provided")
        return self

    def email_list(self) -> List[str]:
        """Normalise single/bulk input to a de-duplicated, lowercased list."""
        raw = self.emails or [self.email]
        seen = []
        for e in raw:
            e = str(e).strip().lower()
            if e not in seen:
                seen.append(e)
        return seen


class InviteUsersDetails(BaseModel):
    created_invitations: List[str] = []
    already_invited: List[str] = []
    existing_users: List[str] = []
    seat_usage: Optional[str] = None


class InviteUsersResponse(BaseModel):
    success: bool
    created: int
    skipped: int
    details: InviteUsersDetails


class InvitationResponse(BaseModel):
    id: str
    email: str
    role: str
    invited_by: Optional[str] = None
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
