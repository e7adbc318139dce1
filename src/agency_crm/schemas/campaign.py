from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    campaign_type: str = "other"
    status: str = "active"
    budget: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Spring Medicare Push",
                "campaign_type": "facebook_ads",
                "budget": 1500,
                "start_date": "2025-03-01",
                "end_date": "2025-05-31",
            }
        }


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    campaign_type: Optional[str] = None
    status: Optional[str] = None
    budget: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class CampaignResponse(BaseModel):
    id: str
    agency_id: str
    name: str
    description: Optional[str] = None
    campaign_type: str
    status: Optional[str] = None
    budget: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    lead_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
