from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class LeadCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    source: str = "website"
    notes: Optional[str] = None
    campaign_id: Optional[str] = None


class LeadStatusUpdate(BaseModel):
    status: str


class LeadResponse(BaseModel):
    id: str
    agency_id: str
    campaign_id: Optional[str] = None
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    source: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    import_job_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaginatedLeadResponse(BaseModel):
    total: int
    limit: int
    offset: int
    leads: List[LeadResponse]
